"""
revenue_config -- single public entrypoint for revenue engine settings.

Responsibility:
    ``get_settings()`` is the only way to obtain configuration at runtime.
    It reads one YAML file, applies the ``DATABASE_URL`` environment
    override, validates, and returns a frozen ``RevenueSettings``.

Architecture position:
    Configuration -- sits above ``revenue_kernel`` and below
    ``revenue_services``.  The kernel never imports from this package; the
    facade passes values from the settings object into kernel constructors.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.
    - ``InvalidCurrencyError`` / ``InvalidTimezoneError`` -- bad defaults.
    - ``yaml.YAMLError`` -- malformed YAML.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from revenue_config.loader import load_yaml_file, parse_settings
from revenue_config.schema import RevenueSettings

_logger = logging.getLogger("revenue_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "REVENUE_CONFIG_PATH"
DATABASE_URL_ENV = "DATABASE_URL"


def get_settings(config_path: Path | str | None = None) -> RevenueSettings:
    """
    Load settings from YAML.

    Resolution order for the file: the ``config_path`` argument, then the
    ``REVENUE_CONFIG_PATH`` environment variable, then the packaged
    ``defaults.yaml``.  ``DATABASE_URL`` overrides ``database_url``.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    settings = parse_settings(load_yaml_file(path))

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        settings = replace(settings, database_url=database_url)

    _logger.info(
        "revenue_config_loaded",
        extra={
            "config_path": str(path),
            "currency": settings.currency,
            "default_timezone": settings.default_timezone,
            "database_url_from_env": bool(database_url),
        },
    )
    return settings


__all__ = ["RevenueSettings", "get_settings", "parse_settings"]
