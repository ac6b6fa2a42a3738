"""
Typed exception hierarchy for the revenue kernel.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe) and a ``kind`` that an outer
transport maps to its own status space. Context is kept as attributes so
it survives logging and serialization.

    RevenueKernelError (base)
    |
    +-- ValidationError                      kind=VALIDATION
    |   +-- InvalidAmountError
    |   +-- FutureDateError
    |   +-- InvalidDateError
    |   +-- InvalidMonthKeyError
    |   +-- InvalidPaymentMethodError
    |   +-- TextTooLongError
    |   +-- InvalidTimezoneError
    |   +-- InvalidCurrencyError
    |   +-- InvalidPaginationError
    |   +-- InvalidVersionError
    |   +-- InvalidTrendWindowError
    |   +-- InvalidReportGroupingError
    |   +-- InvalidSaleItemError
    |
    +-- MissingScopeError                    kind=UNAUTHENTICATED
    |
    +-- NotFoundError                        kind=NOT_FOUND
    |   +-- PaymentNotFoundError
    |   +-- MemberNotFoundError
    |   +-- ProductSaleNotFoundError
    |   +-- MonthLockNotFoundError
    |
    +-- ForbiddenError                       kind=FORBIDDEN
    |   +-- MonthLockedError
    |   +-- PaymentAlreadyCorrectedError
    |   +-- CorrectionTargetError
    |
    +-- ConcurrencyError                     kind=CONFLICT
        +-- OptimisticLockError

Handling pattern::

    try:
        ledger.correct_payment(...)
    except OptimisticLockError as e:
        # stale client: re-fetch and resubmit with e.expected_version + 1
        ...
    except MonthLockedError as e:
        notify(f"{e.month} is locked")
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Transport-neutral error category."""

    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"


class RevenueKernelError(Exception):
    """
    Base exception for all revenue kernel errors.

    All subclasses carry a ``code`` class attribute and a ``kind``.
    """

    code: str = "REVENUE_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


# Validation errors (rejected before any transaction starts)


class ValidationError(RevenueKernelError):
    """Base exception for malformed or out-of-range input."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class InvalidAmountError(ValidationError):
    """Amount is not a positive 2-decimal value within the configured maximum."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class FutureDateError(ValidationError):
    """Business date is after today (UTC)."""

    code: str = "FUTURE_DATE"

    def __init__(self, value: str, today: str):
        self.value = value
        self.today = today
        super().__init__(f"Date {value} is in the future (today is {today})")


class InvalidDateError(ValidationError):
    """Date string is not a valid YYYY-MM-DD civil date, or an instant is naive."""

    code: str = "INVALID_DATE"

    def __init__(self, value: str, expected: str = "YYYY-MM-DD"):
        self.value = value
        self.expected = expected
        super().__init__(f"Invalid date: {value!r} (expected {expected})")


class InvalidMonthKeyError(ValidationError):
    """Month string is not a valid YYYY-MM key."""

    code: str = "INVALID_MONTH_KEY"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid month: {value!r} (expected YYYY-MM)")


class InvalidPaymentMethodError(ValidationError):
    """Payment method is not one of the supported enum values."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, value: str, allowed: tuple[str, ...]):
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid payment method {value!r}; expected one of {', '.join(allowed)}"
        )


class TextTooLongError(ValidationError):
    """Free-text field exceeds its bound."""

    code: str = "TEXT_TOO_LONG"

    def __init__(self, field: str, length: int, max_length: int):
        self.field = field
        self.length = length
        self.max_length = max_length
        super().__init__(
            f"{field} must not exceed {max_length} characters (got {length})"
        )


class InvalidTimezoneError(ValidationError):
    """Timezone is not a known IANA zone name."""

    code: str = "INVALID_TIMEZONE"

    def __init__(self, timezone_name: str):
        self.timezone_name = timezone_name
        super().__init__(f"Unknown IANA timezone: {timezone_name!r}")


class InvalidCurrencyError(ValidationError):
    """Currency is not a 3-letter ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency!r}")


class InvalidPaginationError(ValidationError):
    """Page or limit out of range."""

    code: str = "INVALID_PAGINATION"

    def __init__(self, page: int, limit: int, max_limit: int):
        self.page = page
        self.limit = limit
        self.max_limit = max_limit
        super().__init__(
            f"Invalid pagination page={page} limit={limit} "
            f"(page >= 1, 1 <= limit <= {max_limit})"
        )


class InvalidVersionError(ValidationError):
    """Correction version is not a non-negative integer."""

    code: str = "INVALID_VERSION"

    def __init__(self, version: object):
        self.version = version
        super().__init__(f"Invalid version {version!r} (expected an integer >= 0)")


class InvalidTrendWindowError(ValidationError):
    """Requested trend window is outside 1..max months."""

    code: str = "INVALID_TREND_WINDOW"

    def __init__(self, months: int, max_months: int):
        self.months = months
        self.max_months = max_months
        super().__init__(f"months must be between 1 and {max_months} (got {months})")


class InvalidReportGroupingError(ValidationError):
    """Report grouping is not one of day, week or month."""

    code: str = "INVALID_REPORT_GROUPING"

    def __init__(self, group_by: str, allowed: tuple[str, ...]):
        self.group_by = group_by
        self.allowed = allowed
        super().__init__(
            f"Invalid grouping {group_by!r}; expected one of {', '.join(allowed)}"
        )


class InvalidSaleItemError(ValidationError):
    """Product sale line item is malformed."""

    code: str = "INVALID_SALE_ITEM"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Invalid sale item #{index}: {reason}")


# Scope errors


class MissingScopeError(RevenueKernelError):
    """
    Tenant, branch or user id missing on a call.

    Signals an unauthenticated or malformed call, not a business error.
    """

    code: str = "MISSING_SCOPE"
    kind: ErrorKind = ErrorKind.UNAUTHENTICATED

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required scope value: {field}")


# Not-found errors (cross-tenant access is reported as not found)


class NotFoundError(RevenueKernelError):
    """Base exception for missing or out-of-scope rows."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class PaymentNotFoundError(NotFoundError):
    """Payment does not exist within the caller's tenant."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class MemberNotFoundError(NotFoundError):
    """Member does not exist within the caller's tenant."""

    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(f"Member not found: {member_id}")


class ProductSaleNotFoundError(NotFoundError):
    """Product sale does not exist within the caller's tenant and branch."""

    code: str = "PRODUCT_SALE_NOT_FOUND"

    def __init__(self, sale_id: str):
        self.sale_id = sale_id
        super().__init__(f"Product sale not found: {sale_id}")


class MonthLockNotFoundError(NotFoundError):
    """No lock exists for the month."""

    code: str = "MONTH_LOCK_NOT_FOUND"

    def __init__(self, branch_id: str, month: str):
        self.branch_id = branch_id
        self.month = month
        super().__init__(f"Month {month} is not locked for branch {branch_id}")


# Policy rejections


class ForbiddenError(RevenueKernelError):
    """Base exception for policy rejections."""

    code: str = "FORBIDDEN"
    kind: ErrorKind = ErrorKind.FORBIDDEN


class MonthLockedError(ForbiddenError):
    """Mutation targets a business date inside a locked month."""

    code: str = "MONTH_LOCKED"

    def __init__(self, month: str, operation: str):
        self.month = month
        self.operation = operation
        super().__init__(f"Cannot {operation}: month {month} is locked")


class PaymentAlreadyCorrectedError(ForbiddenError):
    """Original payment already has its one correction."""

    code: str = "PAYMENT_ALREADY_CORRECTED"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(
            f"Payment {payment_id} has already been corrected; "
            "a payment can only be corrected once"
        )


class CorrectionTargetError(ForbiddenError):
    """Correction rows are not themselves correctable; correct the original."""

    code: str = "CORRECTION_NOT_CORRECTABLE"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(
            f"Payment {payment_id} is a correction and cannot be corrected"
        )


# Concurrency


class ConcurrencyError(RevenueKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    kind: ErrorKind = ErrorKind.CONFLICT


class OptimisticLockError(ConcurrencyError):
    """Stored version differs from the caller's, or changed before commit."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id} "
            f"(expected version {expected_version}): "
            "entity was modified by another transaction, re-fetch and retry"
        )
