"""Read-side selectors.  Return frozen DTOs; never mutate."""

from revenue_kernel.selectors.payment_selector import PaymentSelector
from revenue_kernel.selectors.product_sale_selector import ProductSaleSelector
from revenue_kernel.selectors.revenue_selector import RevenueSelector

__all__ = [
    "PaymentSelector",
    "ProductSaleSelector",
    "RevenueSelector",
]
