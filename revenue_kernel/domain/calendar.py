"""
Calendar -- Tenant-local civil calendar over UTC instants.

Responsibility:
    Single source of truth for "which local day / month does this instant
    belong to", and for the UTC instant range that covers a local month.
    Used by both the month-lock gate and the revenue aggregation so that
    the two can never disagree about where an event falls.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Month keys are ``YYYY-MM`` with a month in 01..12.
    - ``month_range_utc(m)`` is half-open ``[start, end)`` and the ranges of
      consecutive months tile the timeline with no gap or overlap.
    - ``days_in_month(m)`` lists every local calendar day of ``m`` in order,
      including 29 February in leap years.
    - A business date (``paid_on``) is already civil: its month is taken
      as written and never shifted through a timezone.

Failure modes:
    - InvalidMonthKeyError for malformed month keys.
    - InvalidTimezoneError for unknown IANA zone names.
    - InvalidDateError for naive datetimes.
"""

from __future__ import annotations

import calendar as _stdlib_calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from revenue_kernel.exceptions import (
    InvalidDateError,
    InvalidMonthKeyError,
    InvalidTimezoneError,
)

MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def parse_month_key(month: str) -> tuple[int, int]:
    """Split ``YYYY-MM`` into (year, month)."""
    if not isinstance(month, str) or not MONTH_KEY_RE.match(month):
        raise InvalidMonthKeyError(str(month))
    year, mon = month.split("-")
    return int(year), int(mon)


def format_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_key_of(d: date) -> str:
    """Month key of a civil date."""
    return format_month_key(d.year, d.month)


def shift_month(month: str, delta: int) -> str:
    """Move a month key by ``delta`` months (negative goes back)."""
    year, mon = parse_month_key(month)
    index = year * 12 + (mon - 1) + delta
    return format_month_key(index // 12, index % 12 + 1)


def month_first_day(month: str) -> date:
    year, mon = parse_month_key(month)
    return date(year, mon, 1)


def month_last_day(month: str) -> date:
    year, mon = parse_month_key(month)
    return date(year, mon, _stdlib_calendar.monthrange(year, mon)[1])


def week_start(d: date) -> date:
    """ISO week start (Monday) of a civil date."""
    return d - timedelta(days=d.weekday())


def require_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise InvalidDateError(instant.isoformat(), "a timezone-aware instant")
    return instant


def load_zone(timezone_name: str) -> ZoneInfo:
    """Resolve an IANA zone name, raising a typed error when unknown."""
    if not timezone_name or not isinstance(timezone_name, str):
        raise InvalidTimezoneError(str(timezone_name))
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(timezone_name) from e


class TimeZoneCalendar:
    """
    Civil calendar of one IANA timezone.

    Contract:
        Constructed from a tenant's timezone name.  Every conversion from a
        UTC instant to a day or month goes through this object.

    Guarantees:
        - ``local_date(i)`` is the wall-clock date of ``i`` in the zone,
          honouring DST transitions.
        - ``trailing_months(n, now)`` returns exactly ``n`` keys, oldest first,
          the last one being the local month containing ``now``.

    Non-goals:
        - Does NOT apply to ``paid_on`` values, which are already civil.
    """

    def __init__(self, timezone_name: str):
        self.timezone_name = timezone_name
        self._zone = load_zone(timezone_name)

    def __repr__(self) -> str:
        return f"TimeZoneCalendar({self.timezone_name!r})"

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def to_local(self, instant: datetime) -> datetime:
        return require_aware(instant).astimezone(self._zone)

    def local_date(self, instant: datetime) -> date:
        """Tenant-local calendar date of a UTC instant."""
        return self.to_local(instant).date()

    def month_key(self, instant: datetime) -> str:
        """Tenant-local ``YYYY-MM`` of a UTC instant."""
        return month_key_of(self.local_date(instant))

    def local_midnight_utc(self, d: date) -> datetime:
        """UTC instant of local midnight starting civil date ``d``."""
        return datetime.combine(d, time.min, tzinfo=self._zone).astimezone(
            timezone.utc
        )

    def month_range_utc(self, month: str) -> tuple[datetime, datetime]:
        """UTC ``[start, end)`` covering the local month exactly."""
        first = month_first_day(month)
        next_first = month_first_day(shift_month(month, 1))
        return self.local_midnight_utc(first), self.local_midnight_utc(next_first)

    def date_range_utc(self, start: date, end: date) -> tuple[datetime, datetime]:
        """UTC ``[start, end)`` covering local civil dates start..end inclusive."""
        return (
            self.local_midnight_utc(start),
            self.local_midnight_utc(end + timedelta(days=1)),
        )

    def days_in_month(self, month: str) -> list[date]:
        """Every local calendar date in the month, ascending."""
        first = month_first_day(month)
        count = (month_last_day(month) - first).days + 1
        return [first + timedelta(days=i) for i in range(count)]

    def trailing_months(self, count: int, now: datetime) -> list[str]:
        """The last ``count`` local months up to and including now's, oldest first."""
        current = self.month_key(now)
        return [shift_month(current, -offset) for offset in range(count - 1, -1, -1)]
