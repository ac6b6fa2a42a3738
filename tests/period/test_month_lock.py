"""
Month lock lifecycle and the write gate.

A locked month rejects payment creation, payment correction, and product
sale creation and deletion.  Locks are per tenant and per branch.
"""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from revenue_kernel.domain.calendar import TimeZoneCalendar
from revenue_kernel.domain.dtos import PaymentCorrection, PaymentDraft
from revenue_kernel.exceptions import (
    ErrorKind,
    InvalidMonthKeyError,
    MissingScopeError,
    MonthLockedError,
    MonthLockNotFoundError,
)
from revenue_kernel.models.revenue_month_lock import RevenueMonthLock

from tests.conftest import BRANCH_ID, TENANT_ID, USER_ID


class TestLockLifecycle:
    def test_lock_then_is_locked(self, session, month_lock_service):
        lock = month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()

        assert lock.month == "2026-01"
        assert lock.locked_by_user_id == USER_ID
        assert month_lock_service.is_locked(TENANT_ID, BRANCH_ID, "2026-01")
        assert not month_lock_service.is_locked(TENANT_ID, BRANCH_ID, "2026-02")

    def test_relock_is_idempotent(self, session, month_lock_service, deterministic_clock):
        first = month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()
        deterministic_clock.advance(3600)

        second = month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", "someone-else")
        session.commit()

        assert second.id == first.id
        assert second.locked_by_user_id == USER_ID
        assert second.locked_at == first.locked_at
        count = session.execute(select(func.count()).select_from(RevenueMonthLock)).scalar_one()
        assert count == 1

    def test_unlock(self, session, month_lock_service):
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()

        removed = month_lock_service.unlock(TENANT_ID, BRANCH_ID, "2026-01")
        session.commit()

        assert removed.month == "2026-01"
        assert not month_lock_service.is_locked(TENANT_ID, BRANCH_ID, "2026-01")

    def test_unlock_unlocked_month(self, month_lock_service):
        with pytest.raises(MonthLockNotFoundError) as exc_info:
            month_lock_service.unlock(TENANT_ID, BRANCH_ID, "2026-01")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    def test_get_lock_missing(self, month_lock_service):
        with pytest.raises(MonthLockNotFoundError):
            month_lock_service.get_lock(TENANT_ID, BRANCH_ID, "2026-01")

    def test_list_locks_newest_first(self, session, month_lock_service):
        for month in ("2025-11", "2026-01", "2025-12"):
            month_lock_service.lock(TENANT_ID, BRANCH_ID, month, USER_ID)
        session.commit()

        months = [lock.month for lock in month_lock_service.list_locks(TENANT_ID, BRANCH_ID)]
        assert months == ["2026-01", "2025-12", "2025-11"]

    def test_malformed_month(self, month_lock_service):
        with pytest.raises(InvalidMonthKeyError):
            month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-1", USER_ID)

    def test_missing_user(self, month_lock_service):
        with pytest.raises(MissingScopeError):
            month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", "")


class TestLockScope:
    def test_other_branch_unaffected(self, session, month_lock_service):
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()
        assert not month_lock_service.is_locked(TENANT_ID, "branch-2", "2026-01")

    def test_other_tenant_unaffected(self, session, month_lock_service):
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()
        assert not month_lock_service.is_locked("tenant-b", BRANCH_ID, "2026-01")

    def test_date_lookup_uses_civil_month(self, session, month_lock_service):
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()
        assert month_lock_service.is_date_locked(TENANT_ID, BRANCH_ID, date(2026, 1, 31))
        assert not month_lock_service.is_date_locked(TENANT_ID, BRANCH_ID, date(2026, 2, 1))

    def test_instant_lookup_uses_local_month(self, session, month_lock_service):
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-02", USER_ID)
        session.commit()
        calendar = TimeZoneCalendar("Europe/Istanbul")
        # 22:00 UTC on Jan 31 is 01:00 on Feb 1 in Istanbul
        instant = datetime(2026, 1, 31, 22, 0, tzinfo=timezone.utc)
        assert month_lock_service.is_instant_locked(TENANT_ID, BRANCH_ID, instant, calendar)


class TestLockGate:
    def test_create_payment_in_locked_month(self, session, ledger, month_lock_service, member_id):
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()

        with pytest.raises(MonthLockedError) as exc_info:
            ledger.create_payment(
                TENANT_ID,
                BRANCH_ID,
                USER_ID,
                PaymentDraft(
                    member_id=member_id,
                    amount="100.00",
                    paid_on="2026-01-20",
                    payment_method="CASH",
                ),
            )
        assert exc_info.value.month == "2026-01"
        assert exc_info.value.kind is ErrorKind.FORBIDDEN

    def test_correction_after_month_locked(self, session, ledger, month_lock_service, create_payment):
        payment = create_payment(paid_on=date(2026, 1, 20))
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()

        with pytest.raises(MonthLockedError) as exc_info:
            ledger.correct_payment(
                TENANT_ID, USER_ID, payment.id, PaymentCorrection(version=0, amount="150.00")
            )
        assert exc_info.value.month == "2026-01"

    def test_correction_moving_money_into_locked_month(
        self, session, ledger, month_lock_service, create_payment
    ):
        payment = create_payment(paid_on=date(2026, 2, 5))
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()

        with pytest.raises(MonthLockedError) as exc_info:
            ledger.correct_payment(
                TENANT_ID,
                USER_ID,
                payment.id,
                PaymentCorrection(version=0, paid_on="2026-01-28"),
            )
        assert exc_info.value.month == "2026-01"

    def test_unlock_reopens_month(self, session, ledger, month_lock_service, create_payment):
        payment = create_payment(paid_on=date(2026, 1, 20))
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()
        month_lock_service.unlock(TENANT_ID, BRANCH_ID, "2026-01")
        session.commit()

        result = ledger.correct_payment(
            TENANT_ID, USER_ID, payment.id, PaymentCorrection(version=0, amount="150.00")
        )
        assert result.correction.is_correction

    def test_rejection_is_logged(self, session, ledger, month_lock_service, member_id, captured_logs):
        month_lock_service.lock(TENANT_ID, BRANCH_ID, "2026-01", USER_ID)
        session.commit()

        with pytest.raises(MonthLockedError):
            ledger.create_payment(
                TENANT_ID,
                BRANCH_ID,
                USER_ID,
                PaymentDraft(
                    member_id=member_id,
                    amount="10.00",
                    paid_on=date(2026, 1, 2),
                    payment_method="CASH",
                ),
            )

        rejections = [r for r in captured_logs() if r["message"] == "month_locked_rejection"]
        assert len(rejections) == 1
        assert rejections[0]["level"] == "WARNING"
        assert rejections[0]["month"] == "2026-01"
        assert rejections[0]["operation"] == "create payment"
