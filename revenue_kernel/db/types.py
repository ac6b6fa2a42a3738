"""
Module: revenue_kernel.db.types
Responsibility: Column types and annotated aliases shared by every model.
    Centralises money precision and timestamp normalisation.
Architecture position: Kernel > DB.  MUST NOT import from models/,
    services/, selectors/ or domain/.

Invariants enforced:
    - No floats for money.  Amounts are NUMERIC(12, 2): ten integer digits
      comfortably hold the 999999.99 per-payment maximum and any monthly
      sum of them.
    - Timestamps leave and enter the database as timezone-aware UTC.
      Backends that drop the offset (SQLite) get naive values tagged as UTC
      on the way out.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

MONEY_PRECISION = 12
MONEY_SCALE = 2

# Monetary amount, 2 fraction digits
Money = Annotated[Decimal, Numeric(MONEY_PRECISION, MONEY_SCALE)]

# Opaque identifiers issued by out-of-core collaborators (tenant, branch, user)
ExternalId = Annotated[str, String(64)]

# YYYY-MM month key
MonthKey = Annotated[str, String(7)]

# Bounded free text
NoteText = Annotated[str, String(500)]


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always round-trips as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime is not allowed: {value!r}")
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
