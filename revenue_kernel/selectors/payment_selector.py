"""
Module: revenue_kernel.selectors.payment_selector
Responsibility: Read access to individual payments and paged payment lists,
    including the correction linkage in both directions.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every query filters by tenant_id; a payment of another tenant is
      reported as not found.
    - With include_corrections off, superseded originals are hidden; the
      correction that replaced each one is shown instead.
    - Ordering is paid_on descending, then created_at descending, then id
      (stable pages).
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Select, func, or_, select

from revenue_kernel.domain.dtos import PageResult, PaymentDTO, PaymentFilter
from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.domain.validation import parse_civil_date, validate_date_range
from revenue_kernel.exceptions import PaymentNotFoundError
from revenue_kernel.models.mapping import payment_to_dto
from revenue_kernel.models.payment import Payment
from revenue_kernel.selectors.base import BaseSelector


class PaymentSelector(BaseSelector[Payment]):
    """Payments read model."""

    def get_payment(self, tenant_id: str, payment_id: str | UUID) -> PaymentDTO:
        """
        Load one payment within the tenant.

        For a superseded original the DTO carries ``corrected_by_id``; for a
        correction it carries ``corrected_payment_id``.
        """
        try:
            payment_uuid = payment_id if isinstance(payment_id, UUID) else UUID(str(payment_id))
        except ValueError as e:
            raise PaymentNotFoundError(str(payment_id)) from e

        payment = self.session.execute(
            select(Payment).where(
                Payment.id == payment_uuid,
                Payment.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))

        corrected_by = self._correcting_ids([payment.id]) if payment.is_corrected else {}
        return payment_to_dto(payment, corrected_by_id=corrected_by.get(payment.id))

    def list_payments(
        self,
        tenant_id: str,
        filters: PaymentFilter,
        page: int,
        limit: int,
    ) -> PageResult:
        """One page of payments plus the total row count."""
        start = parse_civil_date(filters.start_date) if filters.start_date else None
        end = parse_civil_date(filters.end_date) if filters.end_date else None
        validate_date_range(start, end)

        stmt = self._filtered(tenant_id, filters, start, end)
        total = self.session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()

        rows = list(
            self.session.execute(
                stmt.order_by(
                    Payment.paid_on.desc(),
                    Payment.created_at.desc(),
                    Payment.id,
                )
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
        )

        corrected_by = self._correcting_ids([p.id for p in rows if p.is_corrected])
        data = [payment_to_dto(p, corrected_by_id=corrected_by.get(p.id)) for p in rows]
        return PageResult(data=data, page=page, limit=limit, total=total)

    def _filtered(
        self,
        tenant_id: str,
        filters: PaymentFilter,
        start: date | None,
        end: date | None,
    ) -> Select:
        stmt = select(Payment).where(Payment.tenant_id == tenant_id)
        if filters.branch_id:
            stmt = stmt.where(Payment.branch_id == filters.branch_id)
        if filters.member_id:
            stmt = stmt.where(Payment.member_id == str(filters.member_id))
        if filters.payment_method:
            method = PaymentMethod.parse(filters.payment_method)
            stmt = stmt.where(Payment.payment_method == method.value)
        if start is not None:
            stmt = stmt.where(Payment.paid_on >= start)
        if end is not None:
            stmt = stmt.where(Payment.paid_on <= end)
        if not filters.include_corrections:
            stmt = stmt.where(
                or_(Payment.is_correction.is_(True), Payment.is_corrected.is_(False))
            )
        return stmt

    def _correcting_ids(self, original_ids: list[UUID]) -> dict[UUID, UUID]:
        """Map original id -> id of the correction that superseded it."""
        if not original_ids:
            return {}
        rows = self.session.execute(
            select(Payment.corrected_payment_id, Payment.id).where(
                Payment.corrected_payment_id.in_(original_ids)
            )
        ).all()
        return {original_id: correction_id for original_id, correction_id in rows}
