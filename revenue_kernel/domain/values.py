"""
Values -- Immutable, self-validating money value objects.

Responsibility:
    Provides the fixed-point money type used wherever amounts are summed,
    multiplied or serialized.  Replaces primitive Decimal in domain logic
    and guarantees the 2-decimal wire format.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are Decimal, never float.  Floats are rejected outright
      rather than converted, since ``Decimal(0.1)`` is not 0.10.
    - Arithmetic never mixes currencies.
    - ``to_fixed_string()`` always yields exactly 2 fraction digits.

Failure modes:
    - ValueError on construction with invalid amounts or currencies.
    - TypeError when a float is supplied as an amount or factor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0")

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def to_decimal(value: Decimal | str | int) -> Decimal:
    """Convert a str/int/Decimal to Decimal, refusing floats."""
    if isinstance(value, float):
        raise TypeError(f"float is not allowed for money: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def to_fixed_string(amount: Decimal | None) -> str:
    """Serialize an amount as a 2-decimal string; None (empty SUM) is 0.00."""
    if amount is None:
        amount = ZERO
    return str(to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP))


def is_valid_currency(code: str | None) -> bool:
    return bool(code) and _CURRENCY_RE.match(code) is not None


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its ISO 4217 currency code.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount is always a Decimal (never float)
        - Arithmetic and comparison enforce the same-currency constraint

    Non-goals:
        - Does NOT perform currency conversion
        - Does NOT auto-round -- ``to_fixed_string()`` rounds at the edge
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        code = self.currency.upper().strip() if self.currency else ""
        if not is_valid_currency(code):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.currency}")
        object.__setattr__(self, "currency", code)

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str) -> Money:
        return cls(amount=to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(amount=ZERO, currency=currency)

    @classmethod
    def sum(cls, amounts, currency: str) -> Money:
        """Sum an iterable of Decimals (or Money) into one Money."""
        total = cls.zero(currency)
        for amount in amounts:
            if not isinstance(amount, Money):
                amount = cls(amount=amount, currency=currency)
            total = total + amount
        return total

    @property
    def is_zero(self) -> bool:
        return self.amount == ZERO

    @property
    def is_positive(self) -> bool:
        return self.amount > ZERO

    def _check_currency(self, other: Money, op: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {op} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "add")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtract")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __mul__(self, quantity: int) -> Money:
        """Multiply by an integer quantity (line totals)."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return NotImplemented
        return Money(amount=self.amount * quantity, currency=self.currency)

    def __rmul__(self, quantity: int) -> Money:
        return self.__mul__(quantity)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def to_fixed_string(self) -> str:
        return to_fixed_string(self.amount)

    def __str__(self) -> str:
        return f"{self.to_fixed_string()} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
