"""
RevenueSettings schema.

The single immutable configuration object of the revenue engine.  Built
once by ``revenue_config.get_settings()`` and passed into constructors;
kernel code never reads files or environment variables itself.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal


@dataclass(frozen=True)
class RevenueSettings:
    """Environment-derived settings for the revenue engine."""

    database_url: str = "sqlite:///revenue.db"

    # Tenant-level defaults
    currency: str = "TRY"
    default_timezone: str = "Europe/Istanbul"

    # Payment limits
    max_payment_amount: Decimal = Decimal("999999.99")
    note_max_length: int = 500
    correction_reason_max_length: int = 500
    stale_correction_days: int = 90
    idempotency_ttl_hours: int = 24

    # Reporting / paging
    trend_default_months: int = 6
    trend_max_months: int = 24
    list_default_limit: int = 20
    list_max_limit: int = 100

    # Engine
    pool_size: int = 20
    max_overflow: int = 10
    echo_sql: bool = False

    log_level: str = "INFO"

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))
