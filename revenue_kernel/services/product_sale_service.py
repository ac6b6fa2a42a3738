"""
ProductSaleService -- write side of over-the-counter product sales.

Responsibility:
    Creates and deletes product sales.  Totals are computed here, in
    Decimal, from the validated line items.

Architecture position:
    Kernel > Services -- imperative shell.  Shares the month-lock gate and
    money precision contract with PaymentLedger.

Invariants enforced:
    - line_total = unit_price * quantity; total_amount = sum of line totals.
    - Create and delete are rejected when the tenant-local month of
      ``sold_at`` is locked.
    - Sales are scoped by tenant AND branch; another branch's sale is not
      found.
    - Flush-only.

Failure modes:
    - InvalidSaleItemError, InvalidPaymentMethodError, TextTooLongError.
    - InvalidDateError for a naive ``sold_at``.
    - MonthLockedError.
    - ProductSaleNotFoundError.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_kernel.domain.calendar import TimeZoneCalendar, require_aware
from revenue_kernel.domain.clock import Clock
from revenue_kernel.domain.dtos import ProductSaleDraft, ProductSaleDTO
from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.domain.validation import (
    require_scope,
    validate_sale_items,
    validate_text,
)
from revenue_kernel.domain.values import Money
from revenue_kernel.exceptions import ProductSaleNotFoundError
from revenue_kernel.logging_config import get_logger
from revenue_kernel.models.mapping import product_sale_to_dto
from revenue_kernel.models.product_sale import ProductSale, ProductSaleItem
from revenue_kernel.services.base import BaseService
from revenue_kernel.services.directories import TenantDirectory
from revenue_kernel.services.month_lock_service import MonthLockService

logger = get_logger("services.product_sale")


class ProductSaleService(BaseService[ProductSale]):
    """
    Contract:
        ``create_sale`` / ``delete_sale`` flush within the caller's
        transaction and return frozen DTOs.

    Non-goals:
        - Does NOT look up catalog prices; every item carries its unit price.
        - Does NOT offer corrections; delete and recreate instead.
    """

    def __init__(
        self,
        session: Session,
        tenants: TenantDirectory,
        clock: Clock | None = None,
        month_locks: MonthLockService | None = None,
        note_max_length: int = 500,
    ):
        super().__init__(session, clock)
        self._tenants = tenants
        self._month_locks = month_locks or MonthLockService(session, self._clock)
        self._note_max_length = note_max_length

    def _calendar(self, tenant_id: str) -> TimeZoneCalendar:
        return TimeZoneCalendar(self._tenants.profile(tenant_id).timezone)

    def create_sale(
        self,
        tenant_id: str,
        branch_id: str,
        user_id: str,
        draft: ProductSaleDraft,
    ) -> ProductSaleDTO:
        """
        Record a product sale.

        ``sold_at`` defaults to now.  The lock check uses the tenant-local
        month of ``sold_at``.
        """
        require_scope(tenant_id=tenant_id, branch_id=branch_id, user_id=user_id)
        method = PaymentMethod.parse(draft.payment_method)
        note = validate_text("note", draft.note, self._note_max_length)
        lines = validate_sale_items(draft.items)

        now = self._clock.now_utc()
        sold_at = draft.sold_at or now
        require_aware(sold_at)

        profile = self._tenants.profile(tenant_id)
        calendar = TimeZoneCalendar(profile.timezone)
        self._month_locks.assert_month_open(
            tenant_id, branch_id, calendar.month_key(sold_at), "create sale"
        )

        currency = profile.currency
        items = []
        total = Money.zero(currency)
        for position, (item, unit_price) in enumerate(lines):
            line_total = Money.of(unit_price, currency) * item.quantity
            total = total + line_total
            items.append(
                ProductSaleItem(
                    position=position,
                    product_id=item.product_id,
                    custom_name=item.custom_name.strip() if item.custom_name else None,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    line_total=line_total.amount,
                )
            )

        sale = ProductSale(
            tenant_id=tenant_id,
            branch_id=branch_id,
            sold_at=sold_at,
            payment_method=method.value,
            note=note,
            total_amount=total.amount,
            created_by=user_id,
            created_at=now,
            updated_at=now,
            items=items,
        )
        self.session.add(sale)
        self.session.flush()

        logger.info(
            "product_sale_created",
            extra={
                "sale_id": str(sale.id),
                "tenant_id": tenant_id,
                "branch_id": branch_id,
                "payment_method": method.value,
                "sold_at": sold_at.isoformat(),
                "item_count": len(items),
                "actor_user_id": user_id,
            },
        )
        return product_sale_to_dto(sale)

    def delete_sale(
        self,
        tenant_id: str,
        branch_id: str,
        sale_id: str | UUID,
        user_id: str | None = None,
    ) -> ProductSaleDTO:
        """Delete a sale unless its month is locked.  Returns the deleted sale."""
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        sale = self._load(tenant_id, branch_id, sale_id)

        calendar = self._calendar(tenant_id)
        self._month_locks.assert_month_open(
            tenant_id, branch_id, calendar.month_key(sale.sold_at), "delete sale"
        )

        dto = product_sale_to_dto(sale)
        self.session.delete(sale)
        self.session.flush()

        logger.info(
            "product_sale_deleted",
            extra={
                "sale_id": str(dto.id),
                "tenant_id": tenant_id,
                "branch_id": branch_id,
                "sold_at": dto.sold_at.isoformat(),
                "actor_user_id": user_id,
            },
        )
        return dto

    def _load(self, tenant_id: str, branch_id: str, sale_id: str | UUID) -> ProductSale:
        try:
            sale_uuid = sale_id if isinstance(sale_id, UUID) else UUID(str(sale_id))
        except ValueError as e:
            raise ProductSaleNotFoundError(str(sale_id)) from e

        sale = self.session.execute(
            select(ProductSale).where(
                ProductSale.id == sale_uuid,
                ProductSale.tenant_id == tenant_id,
                ProductSale.branch_id == branch_id,
            )
        ).scalar_one_or_none()
        if sale is None:
            raise ProductSaleNotFoundError(str(sale_id))
        return sale
