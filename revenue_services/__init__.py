"""
Revenue services -- the facade that callers use.

``RevenueBackOffice`` owns transactions and the request log context and
returns JSON-ready dicts.  ``revenue_services.cli`` is the operator CLI.
"""

from revenue_services.back_office import (
    RevenueBackOffice,
    error_payload,
    serialize_month_lock,
    serialize_payment,
    serialize_product_sale,
)

__all__ = [
    "RevenueBackOffice",
    "error_payload",
    "serialize_month_lock",
    "serialize_payment",
    "serialize_product_sale",
]
