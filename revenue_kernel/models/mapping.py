"""ORM row -> frozen DTO conversion shared by services and selectors."""

from uuid import UUID

from revenue_kernel.domain.dtos import (
    MonthLockDTO,
    PaymentDTO,
    ProductSaleDTO,
    ProductSaleItemDTO,
)
from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.models.payment import Payment
from revenue_kernel.models.product_sale import ProductSale
from revenue_kernel.models.revenue_month_lock import RevenueMonthLock


def payment_to_dto(payment: Payment, corrected_by_id: UUID | None = None) -> PaymentDTO:
    return PaymentDTO(
        id=payment.id,
        tenant_id=payment.tenant_id,
        branch_id=payment.branch_id,
        member_id=payment.member_id,
        amount=payment.amount,
        paid_on=payment.paid_on,
        payment_method=PaymentMethod(payment.payment_method),
        note=payment.note,
        is_correction=payment.is_correction,
        corrected_payment_id=payment.corrected_payment_id,
        is_corrected=payment.is_corrected,
        correction_reason=payment.correction_reason,
        version=payment.version,
        created_by=payment.created_by,
        created_at=payment.created_at,
        updated_at=payment.updated_at,
        corrected_by_id=corrected_by_id,
    )


def month_lock_to_dto(lock: RevenueMonthLock) -> MonthLockDTO:
    return MonthLockDTO(
        id=lock.id,
        tenant_id=lock.tenant_id,
        branch_id=lock.branch_id,
        month=lock.month,
        locked_at=lock.locked_at,
        locked_by_user_id=lock.locked_by_user_id,
    )


def product_sale_to_dto(sale: ProductSale) -> ProductSaleDTO:
    return ProductSaleDTO(
        id=sale.id,
        tenant_id=sale.tenant_id,
        branch_id=sale.branch_id,
        sold_at=sale.sold_at,
        payment_method=PaymentMethod(sale.payment_method),
        note=sale.note,
        total_amount=sale.total_amount,
        created_by=sale.created_by,
        created_at=sale.created_at,
        items=tuple(
            ProductSaleItemDTO(
                id=item.id,
                product_id=item.product_id,
                custom_name=item.custom_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in sale.items
        ),
    )
