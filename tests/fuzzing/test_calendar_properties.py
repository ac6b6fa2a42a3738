"""
Property-based tests for month keys, tenant-local calendars and money strings.

Properties:
- A local month's UTC range contains every instant whose local month it is
- Consecutive month ranges tile the timeline with no gap or overlap
- Trailing windows are contiguous, oldest first, and end at now's month
- to_fixed_string always yields exactly two fraction digits
"""

import calendar as stdlib_calendar
import re
from datetime import datetime, timezone
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from revenue_kernel.domain.calendar import (
    TimeZoneCalendar,
    format_month_key,
    month_key_of,
    shift_month,
)
from revenue_kernel.domain.validation import validate_amount
from revenue_kernel.domain.values import to_fixed_string

ZONES = [
    "UTC",
    "Europe/Istanbul",
    "Europe/London",
    "America/New_York",
    "Asia/Kolkata",
    "Australia/Sydney",
]

FIXED_RE = re.compile(r"^-?\d+\.\d{2}$")

zones = st.sampled_from(ZONES)
month_keys = st.builds(
    format_month_key,
    st.integers(min_value=1980, max_value=2080),
    st.integers(min_value=1, max_value=12),
)
instants = st.datetimes(
    min_value=datetime(1990, 1, 1),
    max_value=datetime(2070, 12, 31),
    timezones=st.just(timezone.utc),
)


class TestMonthRanges:
    @given(zone=zones, instant=instants)
    @settings(max_examples=300)
    def test_instant_inside_its_local_month(self, zone, instant):
        cal = TimeZoneCalendar(zone)
        start, end = cal.month_range_utc(cal.month_key(instant))
        assert start <= instant < end

    @given(zone=zones, month=month_keys)
    def test_consecutive_months_tile(self, zone, month):
        cal = TimeZoneCalendar(zone)
        _, end = cal.month_range_utc(month)
        next_start, _ = cal.month_range_utc(shift_month(month, 1))
        assert end == next_start

    @given(zone=zones, month=month_keys)
    def test_days_in_month(self, zone, month):
        days = TimeZoneCalendar(zone).days_in_month(month)
        year, mon = int(month[:4]), int(month[5:])
        assert len(days) == stdlib_calendar.monthrange(year, mon)[1]
        assert {month_key_of(d) for d in days} == {month}


class TestMonthArithmetic:
    @given(month=month_keys, delta=st.integers(min_value=-600, max_value=600))
    def test_shift_is_reversible(self, month, delta):
        assert shift_month(shift_month(month, delta), -delta) == month

    @given(zone=zones, now=instants, count=st.integers(min_value=1, max_value=24))
    def test_trailing_window(self, zone, now, count):
        cal = TimeZoneCalendar(zone)
        window = cal.trailing_months(count, now)
        assert len(window) == count
        assert window[-1] == cal.month_key(now)
        for earlier, later in zip(window, window[1:]):
            assert shift_month(earlier, 1) == later


class TestMoneyStrings:
    @given(
        amount=st.decimals(
            min_value=-(10**9),
            max_value=10**9,
            places=4,
            allow_nan=False,
            allow_infinity=False,
        )
    )
    def test_two_fraction_digits(self, amount):
        assert FIXED_RE.match(to_fixed_string(amount))

    @given(cents=st.integers(min_value=1, max_value=99_999_999))
    def test_valid_amounts_round_trip(self, cents):
        amount = Decimal(cents) / 100
        validated = validate_amount(str(amount), Decimal("999999.99"))
        assert validated == amount
        assert to_fixed_string(validated) == f"{cents // 100}.{cents % 100:02d}"
