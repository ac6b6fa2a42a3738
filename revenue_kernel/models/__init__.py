"""ORM models for the revenue kernel."""

from revenue_kernel.models.idempotency_key import IdempotencyKey
from revenue_kernel.models.payment import Payment
from revenue_kernel.models.product_sale import ProductSale, ProductSaleItem
from revenue_kernel.models.revenue_month_lock import RevenueMonthLock
from revenue_kernel.models.tenant import Member, TenantSettings

__all__ = [
    "Payment",
    "RevenueMonthLock",
    "ProductSale",
    "ProductSaleItem",
    "IdempotencyKey",
    "TenantSettings",
    "Member",
]
