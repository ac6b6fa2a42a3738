"""Payment method enumeration shared by payments and product sales."""

from enum import Enum

from revenue_kernel.exceptions import InvalidPaymentMethodError


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    OTHER = "OTHER"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(m.value for m in cls)

    @classmethod
    def parse(cls, value: "PaymentMethod | str") -> "PaymentMethod":
        """Coerce a string to a PaymentMethod, raising a validation error."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidPaymentMethodError(str(value), cls.values()) from e
