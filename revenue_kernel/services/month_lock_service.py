"""
MonthLockService -- month-level write gate for financial records.

Responsibility:
    Creates and removes RevenueMonthLock rows and answers the gate question
    "may a financial record dated in this month be created, corrected or
    deleted?".  Every mutating path in the ledger and the product-sale
    service calls ``assert_month_open`` before it writes.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - The gate check is a single keyed lookup on
      (tenant_id, branch_id, month).
    - Civil dates map to their month as written.  Instants (product sale
      ``sold_at``) map through the tenant's TimeZoneCalendar.
    - Re-locking a locked month is an idempotent no-op returning the
      existing lock.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - MonthLockedError from ``assert_month_open`` / ``assert_date_open``.
    - MonthLockNotFoundError from ``unlock`` / ``get_lock`` when the month
      is not locked.
    - InvalidMonthKeyError for malformed month keys.
    - IntegrityError (uq_revenue_month_lock) when two callers lock the same
      month concurrently; the loser's transaction must be rolled back.

Audit relevance:
    Lock and unlock are logged with tenant, branch, month and actor.  Every
    rejected mutation is logged at WARNING as ``month_locked_rejection``.
"""

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_kernel.domain.calendar import TimeZoneCalendar, month_key_of
from revenue_kernel.domain.clock import Clock
from revenue_kernel.domain.dtos import MonthLockDTO
from revenue_kernel.domain.validation import require_scope, validate_month_key
from revenue_kernel.exceptions import MonthLockedError, MonthLockNotFoundError
from revenue_kernel.logging_config import get_logger
from revenue_kernel.models.mapping import month_lock_to_dto
from revenue_kernel.models.revenue_month_lock import RevenueMonthLock
from revenue_kernel.services.base import BaseService

logger = get_logger("services.month_lock")


class MonthLockService(BaseService[RevenueMonthLock]):
    """
    Service for the per-branch month lock.

    Contract:
        Lock state is a row's existence.  Read methods return bools or
        frozen ``MonthLockDTO`` values; lifecycle methods flush within the
        caller's transaction.

    Guarantees:
        - ``assert_*`` methods either return None or raise MonthLockedError
          carrying the offending month key.
        - ``lock`` called twice for the same month yields one row.

    Non-goals:
        - Does NOT decide who may lock or unlock; role checks are the
          caller's.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def _find(self, tenant_id: str, branch_id: str, month: str) -> RevenueMonthLock | None:
        return self.session.execute(
            select(RevenueMonthLock).where(
                RevenueMonthLock.tenant_id == tenant_id,
                RevenueMonthLock.branch_id == branch_id,
                RevenueMonthLock.month == month,
            )
        ).scalar_one_or_none()

    # -- gate -----------------------------------------------------------------

    def is_locked(self, tenant_id: str, branch_id: str, month: str) -> bool:
        """Keyed lookup: does a lock row exist for the month?"""
        validate_month_key(month)
        found = self.session.execute(
            select(RevenueMonthLock.id).where(
                RevenueMonthLock.tenant_id == tenant_id,
                RevenueMonthLock.branch_id == branch_id,
                RevenueMonthLock.month == month,
            )
        ).first()
        return found is not None

    def is_date_locked(self, tenant_id: str, branch_id: str, business_date: date) -> bool:
        """Lock state of the month a civil business date falls in."""
        return self.is_locked(tenant_id, branch_id, month_key_of(business_date))

    def is_instant_locked(
        self,
        tenant_id: str,
        branch_id: str,
        instant: datetime,
        calendar: TimeZoneCalendar,
    ) -> bool:
        """Lock state of the tenant-local month containing a UTC instant."""
        return self.is_locked(tenant_id, branch_id, calendar.month_key(instant))

    def assert_month_open(
        self, tenant_id: str, branch_id: str, month: str, operation: str
    ) -> None:
        if self.is_locked(tenant_id, branch_id, month):
            logger.warning(
                "month_locked_rejection",
                extra={
                    "tenant_id": tenant_id,
                    "branch_id": branch_id,
                    "month": month,
                    "operation": operation,
                },
            )
            raise MonthLockedError(month, operation)

    def assert_date_open(
        self, tenant_id: str, branch_id: str, business_date: date, operation: str
    ) -> None:
        self.assert_month_open(tenant_id, branch_id, month_key_of(business_date), operation)

    # -- lifecycle -------------------------------------------------------------

    def lock(
        self, tenant_id: str, branch_id: str, month: str, locked_by_user_id: str
    ) -> MonthLockDTO:
        """
        Lock a month for a branch.

        Idempotent: when the month is already locked the existing lock is
        returned unchanged (original locker and timestamp are kept).
        """
        require_scope(tenant_id=tenant_id, branch_id=branch_id, user_id=locked_by_user_id)
        validate_month_key(month)

        existing = self._find(tenant_id, branch_id, month)
        if existing is not None:
            logger.info(
                "month_lock_already_present",
                extra={"branch_id": branch_id, "month": month},
            )
            return month_lock_to_dto(existing)

        row = RevenueMonthLock(
            tenant_id=tenant_id,
            branch_id=branch_id,
            month=month,
            locked_at=self._clock.now_utc(),
            locked_by_user_id=locked_by_user_id,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "month_locked",
            extra={
                "tenant_id": tenant_id,
                "branch_id": branch_id,
                "month": month,
                "locked_by_user_id": locked_by_user_id,
            },
        )
        return month_lock_to_dto(row)

    def unlock(self, tenant_id: str, branch_id: str, month: str) -> MonthLockDTO:
        """Remove the lock; raises MonthLockNotFoundError if none exists."""
        require_scope(tenant_id=tenant_id, branch_id=branch_id)
        validate_month_key(month)

        row = self._find(tenant_id, branch_id, month)
        if row is None:
            raise MonthLockNotFoundError(branch_id, month)

        dto = month_lock_to_dto(row)
        self.session.delete(row)
        self.session.flush()

        logger.info(
            "month_unlocked",
            extra={"tenant_id": tenant_id, "branch_id": branch_id, "month": month},
        )
        return dto

    # -- reads -----------------------------------------------------------------

    def get_lock(self, tenant_id: str, branch_id: str, month: str) -> MonthLockDTO:
        validate_month_key(month)
        row = self._find(tenant_id, branch_id, month)
        if row is None:
            raise MonthLockNotFoundError(branch_id, month)
        return month_lock_to_dto(row)

    def list_locks(self, tenant_id: str, branch_id: str) -> list[MonthLockDTO]:
        """All locks of a branch, newest month first."""
        rows = self.session.execute(
            select(RevenueMonthLock)
            .where(
                RevenueMonthLock.tenant_id == tenant_id,
                RevenueMonthLock.branch_id == branch_id,
            )
            .order_by(RevenueMonthLock.month.desc())
        ).scalars()
        return [month_lock_to_dto(row) for row in rows]
