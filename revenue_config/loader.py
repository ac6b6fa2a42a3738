"""
YAML -> RevenueSettings parsing.

* Unknown keys are rejected with ``ValueError``; a typo in a settings
  file must not silently fall back to a default.
* Money values are parsed as Decimal from their string form.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from revenue_config.schema import RevenueSettings
from revenue_kernel.domain.validation import validate_currency, validate_timezone

_INT_FIELDS = frozenset({
    "note_max_length",
    "correction_reason_max_length",
    "stale_correction_days",
    "idempotency_ttl_hours",
    "trend_default_months",
    "trend_max_months",
    "list_default_limit",
    "list_max_limit",
    "pool_size",
    "max_overflow",
})

_DECIMAL_FIELDS = frozenset({"max_payment_amount"})

_BOOL_FIELDS = frozenset({"echo_sql"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML mapping from disk.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def parse_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, float):
        # YAML reads 999999.99 as float; go through repr to keep the digits
        value = repr(value)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{key}: cannot parse decimal from {value!r}") from e


def parse_settings(data: dict[str, Any]) -> RevenueSettings:
    """Validate and coerce a raw mapping into RevenueSettings."""
    unknown = set(data) - RevenueSettings.field_names()
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if key in _DECIMAL_FIELDS:
            values[key] = parse_decimal(key, value)
        elif key in _INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{key}: expected an integer, got {value!r}")
            values[key] = value
        elif key in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValueError(f"{key}: expected true/false, got {value!r}")
            values[key] = value
        else:
            values[key] = str(value)

    settings = RevenueSettings(**values)
    _check(settings)
    return settings


def _check(settings: RevenueSettings) -> None:
    validate_currency(settings.currency)
    validate_timezone(settings.default_timezone)
    if settings.max_payment_amount <= 0:
        raise ValueError("max_payment_amount must be positive")
    if not 1 <= settings.trend_default_months <= settings.trend_max_months:
        raise ValueError("trend_default_months must be within 1..trend_max_months")
    if not 1 <= settings.list_default_limit <= settings.list_max_limit:
        raise ValueError("list_default_limit must be within 1..list_max_limit")
