"""
Tests for revenue_config: YAML loading, validation and env overrides.
"""

from decimal import Decimal

import pytest
import yaml

from revenue_config import CONFIG_PATH_ENV, DATABASE_URL_ENV, get_settings, parse_settings
from revenue_config.schema import RevenueSettings
from revenue_kernel.exceptions import InvalidCurrencyError, InvalidTimezoneError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


def _write(tmp_path, data) -> str:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


class TestPackagedDefaults:
    def test_defaults_match_schema(self):
        assert get_settings() == RevenueSettings()

    def test_default_values(self):
        settings = get_settings()
        assert settings.currency == "TRY"
        assert settings.default_timezone == "Europe/Istanbul"
        assert settings.max_payment_amount == Decimal("999999.99")
        assert settings.stale_correction_days == 90
        assert settings.trend_max_months == 24
        assert settings.list_max_limit == 100


class TestOverrides:
    def test_explicit_path(self, tmp_path):
        settings = get_settings(_write(tmp_path, {"currency": "USD", "trend_max_months": 12}))
        assert settings.currency == "USD"
        assert settings.trend_max_months == 12
        assert settings.default_timezone == "Europe/Istanbul"

    def test_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, _write(tmp_path, {"default_timezone": "UTC"}))
        assert get_settings().default_timezone == "UTC"

    def test_database_url_env_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://u:p@db/revenue")
        settings = get_settings(_write(tmp_path, {"database_url": "sqlite:///x.db"}))
        assert settings.database_url == "postgresql://u:p@db/revenue"

    def test_decimal_from_float_yaml(self):
        settings = parse_settings({"max_payment_amount": 5000.5})
        assert settings.max_payment_amount == Decimal("5000.5")


class TestRejections:
    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown settings keys"):
            parse_settings({"curency": "TRY"})

    def test_int_type(self):
        with pytest.raises(ValueError):
            parse_settings({"note_max_length": "500"})

    def test_bool_is_not_int(self):
        with pytest.raises(ValueError):
            parse_settings({"pool_size": True})

    def test_bad_currency(self):
        with pytest.raises(InvalidCurrencyError):
            parse_settings({"currency": "lira"})

    def test_bad_timezone(self):
        with pytest.raises(InvalidTimezoneError):
            parse_settings({"default_timezone": "Europe/Atlantis"})

    def test_trend_default_above_max(self):
        with pytest.raises(ValueError):
            parse_settings({"trend_default_months": 30})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_settings(tmp_path / "absent.yaml")

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            get_settings(path)
