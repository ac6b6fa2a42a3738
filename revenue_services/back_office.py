"""
RevenueBackOffice -- transport-agnostic request/response facade.

Responsibility:
    Exposes every payment, month-lock, product-sale and revenue-report
    operation as a plain method taking primitive arguments and returning a
    JSON-ready dict.  Owns transaction boundaries (one ``session_scope`` per
    call), binds the request log context, and serializes money as
    2-decimal strings, dates as ``YYYY-MM-DD`` and months as ``YYYY-MM``.

Architecture position:
    Services -- sits above ``revenue_kernel`` and ``revenue_config``.  An
    HTTP layer (out of scope) would map each method to a route and map
    ``RevenueKernelError.kind`` to a status code.

Invariants enforced:
    - A correction's two writes share one transaction; any error rolls back
      both.
    - Kernel errors propagate unchanged; nothing is swallowed.  Unique-key
      races (idempotency key, month lock) are resolved by re-reading the
      winner's row in a fresh transaction.
    - Every call runs under a LogContext carrying correlation, tenant,
      branch and actor ids.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generator
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from revenue_config.schema import RevenueSettings
from revenue_kernel.db.engine import get_session_factory, session_scope
from revenue_kernel.domain.calendar import TimeZoneCalendar
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.domain.dtos import (
    DayRevenue,
    MethodTotal,
    MonthLockDTO,
    MonthRevenue,
    PaymentCorrection,
    PaymentDraft,
    PaymentDTO,
    PaymentFilter,
    ProductSaleDraft,
    ProductSaleDTO,
    SaleItemDraft,
)
from revenue_kernel.domain.validation import (
    require_scope,
    stale_correction_warning,
    validate_month_key,
    validate_pagination,
)
from revenue_kernel.domain.values import to_fixed_string
from revenue_kernel.exceptions import RevenueKernelError
from revenue_kernel.logging_config import LogContext, get_logger
from revenue_kernel.selectors.payment_selector import PaymentSelector
from revenue_kernel.selectors.product_sale_selector import ProductSaleSelector
from revenue_kernel.selectors.revenue_selector import RevenueSelector
from revenue_kernel.services.directories import SqlMemberDirectory, SqlTenantDirectory
from revenue_kernel.services.idempotency_service import IdempotencyService
from revenue_kernel.services.month_lock_service import MonthLockService
from revenue_kernel.services.payment_ledger import PaymentLedger
from revenue_kernel.services.product_sale_service import ProductSaleService

logger = get_logger("services.back_office")


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _id(value: UUID | None) -> str | None:
    return str(value) if value is not None else None


def serialize_payment(payment: PaymentDTO) -> dict[str, Any]:
    return {
        "id": str(payment.id),
        "tenantId": payment.tenant_id,
        "branchId": payment.branch_id,
        "memberId": payment.member_id,
        "amount": to_fixed_string(payment.amount),
        "paidOn": payment.paid_on.isoformat(),
        "paymentMethod": payment.payment_method.value,
        "note": payment.note,
        "isCorrection": payment.is_correction,
        "correctedPaymentId": _id(payment.corrected_payment_id),
        "isCorrected": payment.is_corrected,
        "correctedById": _id(payment.corrected_by_id),
        "correctionReason": payment.correction_reason,
        "version": payment.version,
        "createdBy": payment.created_by,
        "createdAt": _iso(payment.created_at),
        "updatedAt": _iso(payment.updated_at),
    }


def serialize_month_lock(lock: MonthLockDTO) -> dict[str, Any]:
    return {
        "month": lock.month,
        "branchId": lock.branch_id,
        "lockedAt": _iso(lock.locked_at),
        "lockedByUserId": lock.locked_by_user_id,
    }


def serialize_product_sale(sale: ProductSaleDTO) -> dict[str, Any]:
    return {
        "id": str(sale.id),
        "tenantId": sale.tenant_id,
        "branchId": sale.branch_id,
        "soldAt": _iso(sale.sold_at),
        "paymentMethod": sale.payment_method.value,
        "note": sale.note,
        "totalAmount": to_fixed_string(sale.total_amount),
        "createdBy": sale.created_by,
        "createdAt": _iso(sale.created_at),
        "items": [
            {
                "id": str(item.id),
                "productId": item.product_id,
                "customName": item.custom_name,
                "quantity": item.quantity,
                "unitPrice": to_fixed_string(item.unit_price),
                "lineTotal": to_fixed_string(item.line_total),
            }
            for item in sale.items
        ],
    }


def _serialize_month(entry: MonthRevenue) -> dict[str, Any]:
    return {
        "month": entry.month,
        "membershipRevenue": to_fixed_string(entry.membership_revenue),
        "productRevenue": to_fixed_string(entry.product_revenue),
        "totalRevenue": to_fixed_string(entry.total_revenue),
        "locked": entry.locked,
    }


def _serialize_day(entry: DayRevenue) -> dict[str, Any]:
    return {
        "date": entry.date.isoformat(),
        "membershipRevenue": to_fixed_string(entry.membership_revenue),
        "productRevenue": to_fixed_string(entry.product_revenue),
        "totalRevenue": to_fixed_string(entry.total_revenue),
    }


def _serialize_methods(totals: tuple[MethodTotal, ...]) -> list[dict[str, str]]:
    return [
        {"paymentMethod": t.payment_method.value, "amount": to_fixed_string(t.amount)}
        for t in totals
    ]


def error_payload(exc: RevenueKernelError) -> dict[str, Any]:
    """Transport-neutral error body: code, kind, message."""
    return {"code": exc.code, "kind": exc.kind.value, "message": str(exc)}


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class RevenueBackOffice:
    """
    Entry point for every revenue operation.

    Contract:
        One method per operation.  Each opens its own transaction through
        ``session_scope`` and returns JSON-ready data.  Errors are typed
        ``RevenueKernelError`` subclasses.

    Non-goals:
        - Authentication and role checks; callers pass already-verified
          tenant, branch and user ids.
    """

    def __init__(
        self,
        settings: RevenueSettings,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()

    # -- plumbing -------------------------------------------------------------

    @contextmanager
    def _operation(
        self,
        name: str,
        *,
        tenant_id: str | None = None,
        branch_id: str | None = None,
        actor_id: str | None = None,
        correlation_id: str | None = None,
    ) -> Generator[None, None, None]:
        with LogContext.bind(
            correlation_id=correlation_id or uuid4().hex,
            tenant_id=tenant_id,
            branch_id=branch_id,
            actor_id=actor_id,
        ):
            logger.debug("operation_started", extra={"operation": name})
            yield

    def _transaction(self):
        return session_scope(self._session_factory)

    def _tenants(self, session: Session) -> SqlTenantDirectory:
        return SqlTenantDirectory(
            session, self.settings.default_timezone, self.settings.currency
        )

    def _ledger(self, session: Session) -> PaymentLedger:
        return PaymentLedger(
            session,
            clock=self._clock,
            month_locks=MonthLockService(session, self._clock),
            members=SqlMemberDirectory(session),
            max_amount=self.settings.max_payment_amount,
            note_max_length=self.settings.note_max_length,
            reason_max_length=self.settings.correction_reason_max_length,
        )

    def _revenue(self, session: Session, tenant_id: str) -> tuple[RevenueSelector, str]:
        profile = self._tenants(session).profile(tenant_id)
        selector = RevenueSelector(
            session,
            TimeZoneCalendar(profile.timezone),
            clock=self._clock,
            trend_max_months=self.settings.trend_max_months,
        )
        return selector, profile.currency

    def _page(self, page: int, limit: int | None) -> tuple[int, int]:
        return validate_pagination(
            page,
            limit if limit is not None else self.settings.list_default_limit,
            self.settings.list_max_limit,
        )

    # -- payments -------------------------------------------------------------

    def create_payment(
        self,
        tenant_id: str,
        branch_id: str,
        user_id: str,
        member_id: str,
        amount: Decimal | str,
        paid_on: date | str,
        payment_method: str,
        note: str | None = None,
        idempotency_key: str | None = None,
        correlation_id: str | None = None,
    ) -> dict[str, Any]:
        """Record a payment; a live idempotency key replays the earlier result."""
        draft = PaymentDraft(
            member_id=member_id,
            amount=amount,
            paid_on=paid_on,
            payment_method=payment_method,
            note=note,
        )
        with self._operation(
            "create_payment",
            tenant_id=tenant_id,
            branch_id=branch_id,
            actor_id=user_id,
            correlation_id=correlation_id,
        ):
            try:
                with self._transaction() as session:
                    if idempotency_key:
                        keys = IdempotencyService(
                            session, self._clock, self.settings.idempotency_ttl_hours
                        )
                        replayed = keys.find_live(tenant_id, idempotency_key)
                        if replayed is not None:
                            return self._replay(session, tenant_id, replayed)

                    payment = self._ledger(session).create_payment(
                        tenant_id, branch_id, user_id, draft
                    )
                    if idempotency_key:
                        keys.record(tenant_id, idempotency_key, payment.id)
                    return serialize_payment(payment)
            except IntegrityError:
                if not idempotency_key:
                    raise
                # A concurrent request with the same key committed first.
                with self._transaction() as session:
                    keys = IdempotencyService(
                        session, self._clock, self.settings.idempotency_ttl_hours
                    )
                    replayed = keys.find_live(tenant_id, idempotency_key)
                    if replayed is None:
                        raise
                    return self._replay(session, tenant_id, replayed)

    def _replay(self, session: Session, tenant_id: str, payment_id: UUID) -> dict[str, Any]:
        logger.info("idempotent_replay", extra={"payment_id": str(payment_id)})
        return serialize_payment(PaymentSelector(session).get_payment(tenant_id, payment_id))

    def correct_payment(
        self,
        tenant_id: str,
        user_id: str,
        payment_id: str,
        version: int,
        amount: Decimal | str | None = None,
        paid_on: date | str | None = None,
        payment_method: str | None = None,
        note: str | None = None,
        correction_reason: str | None = None,
        correlation_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Correct a payment.  Returns the correction row plus ``warning``, a
        soft notice when the original is older than the stale threshold.
        """
        correction = PaymentCorrection(
            version=version,
            amount=amount,
            paid_on=paid_on,
            payment_method=payment_method,
            note=note,
            correction_reason=correction_reason,
        )
        with self._operation(
            "correct_payment",
            tenant_id=tenant_id,
            actor_id=user_id,
            correlation_id=correlation_id,
        ):
            with self._transaction() as session:
                result = self._ledger(session).correct_payment(
                    tenant_id, user_id, payment_id, correction
                )

            body = serialize_payment(result.correction)
            body["warning"] = stale_correction_warning(
                result.original.paid_on,
                self._clock.today_utc(),
                self.settings.stale_correction_days,
            )
            return body

    def get_payment(self, tenant_id: str, payment_id: str) -> dict[str, Any]:
        require_scope(tenant_id=tenant_id)
        with self._operation("get_payment", tenant_id=tenant_id):
            with self._transaction() as session:
                return serialize_payment(
                    PaymentSelector(session).get_payment(tenant_id, payment_id)
                )

    def list_payments(
        self,
        tenant_id: str,
        branch_id: str | None = None,
        member_id: str | None = None,
        payment_method: str | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        include_corrections: bool = False,
        page: int = 1,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Filtered, paged payments: ``{data, pagination}``."""
        require_scope(tenant_id=tenant_id)
        page, limit = self._page(page, limit)
        filters = PaymentFilter(
            branch_id=branch_id,
            member_id=member_id,
            payment_method=payment_method,
            start_date=start_date,
            end_date=end_date,
            include_corrections=include_corrections,
        )
        with self._operation("list_payments", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                result = PaymentSelector(session).list_payments(
                    tenant_id, filters, page, limit
                )
            return {
                "data": [serialize_payment(p) for p in result.data],
                "pagination": {
                    "page": result.page,
                    "limit": result.limit,
                    "total": result.total,
                    "totalPages": result.total_pages,
                },
            }

    def get_member_payments(
        self,
        tenant_id: str,
        member_id: str,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """A member's payments; a member of another tenant is not found."""
        require_scope(tenant_id=tenant_id)
        with self._operation("get_member_payments", tenant_id=tenant_id):
            with self._transaction() as session:
                SqlMemberDirectory(session).require_member(tenant_id, member_id)
        return self.list_payments(
            tenant_id,
            member_id=member_id,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
        )

    def get_revenue_report(
        self,
        tenant_id: str,
        start_date: date | str,
        end_date: date | str,
        branch_id: str | None = None,
        payment_method: str | None = None,
        group_by: str = "day",
    ) -> dict[str, Any]:
        """Membership-only ranged report bucketed by day, ISO week or month."""
        require_scope(tenant_id=tenant_id)
        with self._operation("get_revenue_report", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                selector, currency = self._revenue(session, tenant_id)
                report = selector.revenue_report(
                    tenant_id,
                    start_date,
                    end_date,
                    branch_id=branch_id,
                    payment_method=payment_method,
                    group_by=group_by,
                )
            return {
                "startDate": report.start_date.isoformat(),
                "endDate": report.end_date.isoformat(),
                "period": report.group_by,
                "currency": currency,
                "totalRevenue": to_fixed_string(report.total_revenue),
                "breakdown": [
                    {
                        "period": b.period,
                        "revenue": to_fixed_string(b.revenue),
                        "count": b.count,
                    }
                    for b in report.buckets
                ],
            }

    # -- revenue aggregation --------------------------------------------------

    def get_monthly_revenue(self, tenant_id: str, branch_id: str, month: str) -> dict[str, Any]:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        with self._operation("get_monthly_revenue", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                selector, currency = self._revenue(session, tenant_id)
                entry = selector.monthly_revenue(tenant_id, branch_id, month)
            body = _serialize_month(entry)
            body["currency"] = currency
            return body

    def get_revenue_trend(
        self, tenant_id: str, branch_id: str, months: int | None = None
    ) -> dict[str, Any]:
        """The last N tenant-local months, oldest first, zero-filled."""
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        if months is None:
            months = self.settings.trend_default_months
        with self._operation("get_revenue_trend", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                selector, currency = self._revenue(session, tenant_id)
                series = selector.revenue_trend(tenant_id, branch_id, months)
            return {
                "currency": currency,
                "months": [_serialize_month(entry) for entry in series],
            }

    def get_daily_breakdown(self, tenant_id: str, branch_id: str, month: str) -> dict[str, Any]:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        with self._operation("get_daily_breakdown", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                selector, currency = self._revenue(session, tenant_id)
                days = selector.daily_breakdown(tenant_id, branch_id, month)
            return {
                "month": month,
                "currency": currency,
                "days": [_serialize_day(day) for day in days],
            }

    def get_payment_method_breakdown(
        self, tenant_id: str, branch_id: str, month: str
    ) -> dict[str, Any]:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        with self._operation(
            "get_payment_method_breakdown", tenant_id=tenant_id, branch_id=branch_id
        ):
            with self._transaction() as session:
                selector, currency = self._revenue(session, tenant_id)
                breakdown = selector.payment_method_breakdown(tenant_id, branch_id, month)
            return {
                "month": breakdown.month,
                "currency": currency,
                "membershipByMethod": _serialize_methods(breakdown.membership_by_method),
                "productSalesByMethod": _serialize_methods(breakdown.product_by_method),
            }

    # -- month locks ----------------------------------------------------------

    def lock_month(
        self, tenant_id: str, branch_id: str, month: str, locked_by_user_id: str
    ) -> dict[str, Any]:
        """Lock a month; locking a locked month returns the existing lock."""
        with self._operation(
            "lock_month", tenant_id=tenant_id, branch_id=branch_id, actor_id=locked_by_user_id
        ):
            try:
                with self._transaction() as session:
                    lock = MonthLockService(session, self._clock).lock(
                        tenant_id, branch_id, month, locked_by_user_id
                    )
            except IntegrityError:
                # Lost a concurrent lock race; the month is locked either way.
                with self._transaction() as session:
                    lock = MonthLockService(session, self._clock).get_lock(
                        tenant_id, branch_id, month
                    )
            return serialize_month_lock(lock)

    def unlock_month(
        self, tenant_id: str, branch_id: str, month: str, user_id: str | None = None
    ) -> dict[str, Any]:
        with self._operation(
            "unlock_month", tenant_id=tenant_id, branch_id=branch_id, actor_id=user_id
        ):
            with self._transaction() as session:
                lock = MonthLockService(session, self._clock).unlock(
                    tenant_id, branch_id, month
                )
            return serialize_month_lock(lock)

    def is_month_locked(self, tenant_id: str, branch_id: str, month: str) -> bool:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        validate_month_key(month)
        with self._operation("is_month_locked", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                return MonthLockService(session, self._clock).is_locked(
                    tenant_id, branch_id, month
                )

    def get_month_lock(self, tenant_id: str, branch_id: str, month: str) -> dict[str, Any]:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        with self._operation("get_month_lock", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                lock = MonthLockService(session, self._clock).get_lock(
                    tenant_id, branch_id, month
                )
            return serialize_month_lock(lock)

    def list_month_locks(self, tenant_id: str, branch_id: str) -> list[dict[str, Any]]:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        with self._operation("list_month_locks", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                locks = MonthLockService(session, self._clock).list_locks(
                    tenant_id, branch_id
                )
            return [serialize_month_lock(lock) for lock in locks]

    # -- product sales --------------------------------------------------------

    def _sales(self, session: Session) -> ProductSaleService:
        return ProductSaleService(
            session,
            self._tenants(session),
            clock=self._clock,
            note_max_length=self.settings.note_max_length,
        )

    def create_product_sale(
        self,
        tenant_id: str,
        branch_id: str,
        user_id: str,
        payment_method: str,
        items: list[dict[str, Any]],
        sold_at: datetime | None = None,
        note: str | None = None,
    ) -> dict[str, Any]:
        """
        Record a product sale.  Each item dict carries ``quantity``,
        ``unitPrice`` and exactly one of ``productId`` / ``customName``.
        """
        draft = ProductSaleDraft(
            payment_method=payment_method,
            items=tuple(
                SaleItemDraft(
                    quantity=item.get("quantity"),
                    unit_price=item.get("unitPrice"),
                    product_id=item.get("productId"),
                    custom_name=item.get("customName"),
                )
                for item in items
            ),
            sold_at=sold_at,
            note=note,
        )
        with self._operation(
            "create_product_sale", tenant_id=tenant_id, branch_id=branch_id, actor_id=user_id
        ):
            with self._transaction() as session:
                sale = self._sales(session).create_sale(tenant_id, branch_id, user_id, draft)
            return serialize_product_sale(sale)

    def delete_product_sale(
        self, tenant_id: str, branch_id: str, sale_id: str, user_id: str | None = None
    ) -> dict[str, Any]:
        with self._operation(
            "delete_product_sale", tenant_id=tenant_id, branch_id=branch_id, actor_id=user_id
        ):
            with self._transaction() as session:
                sale = self._sales(session).delete_sale(tenant_id, branch_id, sale_id, user_id)
            return serialize_product_sale(sale)

    def get_product_sale(self, tenant_id: str, branch_id: str, sale_id: str) -> dict[str, Any]:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        with self._operation("get_product_sale", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                sale = ProductSaleSelector(session).get_sale(tenant_id, branch_id, sale_id)
            return serialize_product_sale(sale)

    def list_product_sales(
        self,
        tenant_id: str,
        branch_id: str,
        sold_from: datetime | None = None,
        sold_to: datetime | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        page, limit = self._page(page, limit)
        with self._operation("list_product_sales", tenant_id=tenant_id, branch_id=branch_id):
            with self._transaction() as session:
                sales = ProductSaleSelector(session).list_sales(
                    tenant_id,
                    branch_id,
                    sold_from=sold_from,
                    sold_to=sold_to,
                    limit=limit,
                    offset=(page - 1) * limit,
                )
            return [serialize_product_sale(sale) for sale in sales]
