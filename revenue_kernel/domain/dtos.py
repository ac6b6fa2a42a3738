"""
DTOs -- Frozen data transfer objects crossing the kernel boundary.

Services and selectors take drafts in and hand DTOs out; ORM rows never
leave a session.  All amounts are Decimal, all business dates are civil
``date`` values and all instants are timezone-aware UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.domain.values import ZERO

# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentDraft:
    """Input for createPayment."""

    member_id: str
    amount: Decimal | str
    paid_on: date | str
    payment_method: PaymentMethod | str
    note: str | None = None


@dataclass(frozen=True)
class PaymentCorrection:
    """
    Input for correctPayment.

    ``version`` is the version the caller last read.  Every other field is
    an override; None means "keep the original's value".
    """

    version: int
    amount: Decimal | str | None = None
    paid_on: date | str | None = None
    payment_method: PaymentMethod | str | None = None
    note: str | None = None
    correction_reason: str | None = None


@dataclass(frozen=True)
class PaymentDTO:
    id: UUID
    tenant_id: str
    branch_id: str
    member_id: str
    amount: Decimal
    paid_on: date
    payment_method: PaymentMethod
    note: str | None
    is_correction: bool
    corrected_payment_id: UUID | None
    is_corrected: bool
    correction_reason: str | None
    version: int
    created_by: str
    created_at: datetime
    updated_at: datetime
    corrected_by_id: UUID | None = None


@dataclass(frozen=True)
class CorrectionResult:
    """Outcome of a committed correction: the new row and the superseded one."""

    correction: PaymentDTO
    original: PaymentDTO


@dataclass(frozen=True)
class PaymentFilter:
    branch_id: str | None = None
    member_id: str | None = None
    payment_method: PaymentMethod | str | None = None
    start_date: date | str | None = None
    end_date: date | str | None = None
    include_corrections: bool = False


@dataclass(frozen=True)
class PageResult:
    data: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


# ---------------------------------------------------------------------------
# Month locks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonthLockDTO:
    id: UUID
    tenant_id: str
    branch_id: str
    month: str
    locked_at: datetime
    locked_by_user_id: str


# ---------------------------------------------------------------------------
# Product sales
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaleItemDraft:
    quantity: int
    unit_price: Decimal | str
    product_id: str | None = None
    custom_name: str | None = None


@dataclass(frozen=True)
class ProductSaleDraft:
    payment_method: PaymentMethod | str
    items: tuple[SaleItemDraft, ...]
    sold_at: datetime | None = None
    note: str | None = None


@dataclass(frozen=True)
class ProductSaleItemDTO:
    id: UUID
    product_id: str | None
    custom_name: str | None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class ProductSaleDTO:
    id: UUID
    tenant_id: str
    branch_id: str
    sold_at: datetime
    payment_method: PaymentMethod
    note: str | None
    total_amount: Decimal
    created_by: str
    created_at: datetime
    items: tuple[ProductSaleItemDTO, ...] = ()


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TenantProfile:
    tenant_id: str
    timezone: str
    currency: str


@dataclass(frozen=True)
class MonthRevenue:
    month: str
    membership_revenue: Decimal
    product_revenue: Decimal
    locked: bool

    @property
    def total_revenue(self) -> Decimal:
        return self.membership_revenue + self.product_revenue


@dataclass(frozen=True)
class DayRevenue:
    date: date
    membership_revenue: Decimal
    product_revenue: Decimal

    @property
    def total_revenue(self) -> Decimal:
        return self.membership_revenue + self.product_revenue


@dataclass(frozen=True)
class MethodTotal:
    payment_method: PaymentMethod
    amount: Decimal


@dataclass(frozen=True)
class MethodBreakdown:
    month: str
    membership_by_method: tuple[MethodTotal, ...]
    product_by_method: tuple[MethodTotal, ...]


@dataclass(frozen=True)
class RevenueBucket:
    period: str
    revenue: Decimal
    count: int


@dataclass(frozen=True)
class RevenueReport:
    start_date: date
    end_date: date
    group_by: str
    buckets: tuple[RevenueBucket, ...] = field(default_factory=tuple)
    total_revenue: Decimal = ZERO
