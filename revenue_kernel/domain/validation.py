"""
Validation -- Precondition functions run before any transaction begins.

Responsibility:
    Turn raw caller input into typed, range-checked values, raising a typed
    ValidationError (or MissingScopeError) on the first problem found.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  "Today" is passed in by the
    caller from its injected Clock.

Invariants enforced:
    - Amounts are positive, have at most 2 fraction digits and do not exceed
      the configured maximum.
    - Business dates are strict ``YYYY-MM-DD`` civil dates and never after
      today (UTC, date granularity).
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import Decimal

from revenue_kernel.domain.calendar import load_zone, parse_month_key
from revenue_kernel.domain.dtos import SaleItemDraft
from revenue_kernel.domain.values import CENT, ZERO, is_valid_currency, to_decimal
from revenue_kernel.exceptions import (
    FutureDateError,
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidDateError,
    InvalidPaginationError,
    InvalidSaleItemError,
    InvalidTrendWindowError,
    InvalidVersionError,
    MissingScopeError,
    TextTooLongError,
)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

STALE_CORRECTION_WARNING = (
    "This payment is older than {days} days. The correction was applied, "
    "but corrections to old payments should be reviewed carefully."
)


def require_scope(**values: str | None) -> None:
    """Fail fast on an empty tenant/branch/user id."""
    for name, value in values.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingScopeError(name)


def validate_amount(value: Decimal | str | int, max_amount: Decimal) -> Decimal:
    """Positive, at most 2 decimals, not above max_amount."""
    try:
        amount = to_decimal(value)
    except (TypeError, ValueError) as e:
        raise InvalidAmountError(str(value), "not a decimal number") from e
    if not amount.is_finite():
        raise InvalidAmountError(str(value), "not a finite number")
    if amount <= ZERO:
        raise InvalidAmountError(str(value), "must be greater than 0")
    if amount > max_amount:
        raise InvalidAmountError(str(value), f"must not exceed {max_amount}")
    if amount != amount.quantize(CENT):
        raise InvalidAmountError(str(value), "at most 2 decimal places allowed")
    return amount.quantize(CENT)


def parse_civil_date(value: date | str) -> date:
    """Accept a ``date`` or a strict ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        raise InvalidDateError(value.isoformat())
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidDateError(str(value))
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateError(value) from e


def validate_not_future(paid_on: date, today: date) -> date:
    if paid_on > today:
        raise FutureDateError(paid_on.isoformat(), today.isoformat())
    return paid_on


def validate_month_key(month: str) -> str:
    parse_month_key(month)
    return month


def validate_text(field: str, value: str | None, max_length: int) -> str | None:
    if value is not None and len(value) > max_length:
        raise TextTooLongError(field, len(value), max_length)
    return value


def validate_pagination(page: int, limit: int, max_limit: int) -> tuple[int, int]:
    if (
        isinstance(page, bool)
        or isinstance(limit, bool)
        or not isinstance(page, int)
        or not isinstance(limit, int)
        or page < 1
        or limit < 1
        or limit > max_limit
    ):
        raise InvalidPaginationError(page, limit, max_limit)
    return page, limit


def validate_version(version: int) -> int:
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        raise InvalidVersionError(version)
    return version


def validate_trend_window(months: int, max_months: int) -> int:
    if isinstance(months, bool) or not isinstance(months, int) or not 1 <= months <= max_months:
        raise InvalidTrendWindowError(months, max_months)
    return months


def validate_currency(code: str) -> str:
    if not is_valid_currency(code):
        raise InvalidCurrencyError(code)
    return code


def validate_timezone(name: str) -> str:
    load_zone(name)
    return name


def validate_date_range(start: date | None, end: date | None) -> None:
    if start is not None and end is not None and start > end:
        raise InvalidDateError(f"{start.isoformat()}..{end.isoformat()}")


def validate_sale_items(items) -> list[tuple[SaleItemDraft, Decimal]]:
    """
    Check every line and return (item, unit_price) pairs.

    Each item carries exactly one of product_id / custom_name, a quantity of
    at least 1 and a unit price of at least 0 with at most 2 decimals.
    """
    if not items:
        raise InvalidSaleItemError(0, "a sale needs at least one item")
    checked = []
    for index, item in enumerate(items):
        has_product = bool(item.product_id)
        has_name = bool(item.custom_name and item.custom_name.strip())
        if has_product == has_name:
            raise InvalidSaleItemError(
                index, "exactly one of product_id or custom_name is required"
            )
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 1:
            raise InvalidSaleItemError(index, "quantity must be an integer >= 1")
        try:
            unit_price = to_decimal(item.unit_price)
        except (TypeError, ValueError) as e:
            raise InvalidSaleItemError(index, "unit_price is not a decimal number") from e
        if not unit_price.is_finite() or unit_price < ZERO:
            raise InvalidSaleItemError(index, "unit_price must be >= 0")
        if unit_price != unit_price.quantize(CENT):
            raise InvalidSaleItemError(index, "unit_price allows at most 2 decimal places")
        checked.append((item, unit_price.quantize(CENT)))
    return checked


def stale_correction_warning(original_paid_on: date, today: date, threshold_days: int) -> str | None:
    """Soft warning when the corrected payment is older than the threshold."""
    if today - original_paid_on > timedelta(days=threshold_days):
        return STALE_CORRECTION_WARNING.format(days=threshold_days)
    return None
