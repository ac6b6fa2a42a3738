"""Write-side services.  Flush-only; the caller owns the transaction."""

from revenue_kernel.services.directories import (
    MemberDirectory,
    SqlMemberDirectory,
    SqlTenantDirectory,
    TenantDirectory,
)
from revenue_kernel.services.idempotency_service import IdempotencyService
from revenue_kernel.services.month_lock_service import MonthLockService
from revenue_kernel.services.payment_ledger import PaymentLedger
from revenue_kernel.services.product_sale_service import ProductSaleService

__all__ = [
    "MonthLockService",
    "PaymentLedger",
    "ProductSaleService",
    "IdempotencyService",
    "MemberDirectory",
    "TenantDirectory",
    "SqlMemberDirectory",
    "SqlTenantDirectory",
]
