"""Domain layer - pure value types, calendar, DTOs and preconditions."""

from revenue_kernel.domain.calendar import TimeZoneCalendar, month_key_of, shift_month
from revenue_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.domain.values import Money, to_fixed_string

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Money",
    "to_fixed_string",
    "PaymentMethod",
    "TimeZoneCalendar",
    "month_key_of",
    "shift_month",
]
