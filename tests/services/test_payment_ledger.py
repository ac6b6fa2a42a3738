"""
PaymentLedger: payment creation and the single auditable correction.

Verifies:
- Creation preconditions (scope, amount range, future dates, member tenancy)
- Corrections insert a new row and only flip is_corrected / bump version
  on the original
- Omitted correction fields fall back to the original's values
- Single-correction rule regardless of supplied version
- Stale version is a conflict, not a policy rejection
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from revenue_kernel.domain.dtos import PaymentCorrection, PaymentDraft
from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.exceptions import (
    CorrectionTargetError,
    ErrorKind,
    FutureDateError,
    InvalidAmountError,
    InvalidDateError,
    InvalidVersionError,
    MemberNotFoundError,
    MissingScopeError,
    OptimisticLockError,
    PaymentAlreadyCorrectedError,
    PaymentNotFoundError,
    TextTooLongError,
)
from revenue_kernel.models.payment import Payment

from tests.conftest import BRANCH_ID, OTHER_TENANT_ID, TENANT_ID, USER_ID


def _draft(member_id, **overrides):
    values = dict(
        member_id=member_id,
        amount="250.00",
        paid_on="2026-02-10",
        payment_method="CREDIT_CARD",
        note="February membership",
    )
    values.update(overrides)
    return PaymentDraft(**values)


class TestCreatePayment:
    def test_creates_original(self, session, ledger, member_id, deterministic_clock):
        payment = ledger.create_payment(TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id))
        session.commit()

        assert payment.amount == Decimal("250.00")
        assert payment.paid_on == date(2026, 2, 10)
        assert payment.payment_method is PaymentMethod.CREDIT_CARD
        assert payment.version == 0
        assert payment.is_correction is False
        assert payment.is_corrected is False
        assert payment.corrected_payment_id is None
        assert payment.created_by == USER_ID
        assert payment.created_at == deterministic_clock.now_utc()

    def test_paid_today_is_allowed(self, ledger, member_id):
        payment = ledger.create_payment(
            TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id, paid_on="2026-02-15")
        )
        assert payment.paid_on == date(2026, 2, 15)

    def test_future_date_rejected(self, ledger, member_id):
        with pytest.raises(FutureDateError):
            ledger.create_payment(
                TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id, paid_on="2026-02-16")
            )

    @pytest.mark.parametrize("amount", ["0", "-5.00", "1000000.00", "10.001"])
    def test_amount_out_of_range(self, ledger, member_id, amount):
        with pytest.raises(InvalidAmountError) as exc_info:
            ledger.create_payment(TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id, amount=amount))
        assert exc_info.value.kind is ErrorKind.VALIDATION

    def test_upper_bound_inclusive(self, ledger, member_id):
        payment = ledger.create_payment(
            TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id, amount="999999.99")
        )
        assert payment.amount == Decimal("999999.99")

    def test_malformed_date(self, ledger, member_id):
        with pytest.raises(InvalidDateError):
            ledger.create_payment(
                TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id, paid_on="10/02/2026")
            )

    @pytest.mark.parametrize(
        "tenant_id, branch_id, user_id",
        [("", BRANCH_ID, USER_ID), (TENANT_ID, "", USER_ID), (TENANT_ID, BRANCH_ID, None)],
    )
    def test_missing_scope(self, ledger, member_id, tenant_id, branch_id, user_id):
        with pytest.raises(MissingScopeError):
            ledger.create_payment(tenant_id, branch_id, user_id, _draft(member_id))

    def test_member_of_other_tenant(self, ledger, create_member):
        foreign_member = create_member(tenant_id=OTHER_TENANT_ID)
        with pytest.raises(MemberNotFoundError):
            ledger.create_payment(TENANT_ID, BRANCH_ID, USER_ID, _draft(foreign_member))

    def test_unknown_member(self, ledger):
        with pytest.raises(MemberNotFoundError):
            ledger.create_payment(TENANT_ID, BRANCH_ID, USER_ID, _draft(str(uuid4())))

    def test_note_too_long(self, ledger, member_id):
        with pytest.raises(TextTooLongError):
            ledger.create_payment(TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id, note="x" * 501))

    def test_amount_never_logged(self, ledger, member_id, captured_logs):
        ledger.create_payment(TENANT_ID, BRANCH_ID, USER_ID, _draft(member_id))
        created = [r for r in captured_logs() if r["message"] == "payment_created"]
        assert len(created) == 1
        assert "amount" not in created[0]
        assert "note" not in created[0]
        assert created[0]["paid_on"] == "2026-02-10"


class TestCorrectPayment:
    def test_correction_supersedes_original(self, session, ledger, create_payment):
        original = create_payment(amount="100.00", paid_on=date(2026, 2, 10), note="orig")

        result = ledger.correct_payment(
            TENANT_ID,
            USER_ID,
            original.id,
            PaymentCorrection(version=0, amount="150.00", correction_reason="typo"),
        )
        session.commit()

        correction = result.correction
        assert correction.is_correction is True
        assert correction.corrected_payment_id == original.id
        assert correction.is_corrected is False
        assert correction.amount == Decimal("150.00")
        assert correction.correction_reason == "typo"
        assert correction.version == 0
        assert correction.member_id == original.member_id
        assert correction.branch_id == original.branch_id

        assert result.original.is_corrected is True
        assert result.original.version == 1
        assert result.original.corrected_by_id == correction.id

    def test_original_fields_untouched(self, session, ledger, create_payment):
        original = create_payment(
            amount="100.00", paid_on=date(2026, 2, 10), payment_method="CASH", note="orig"
        )

        ledger.correct_payment(
            TENANT_ID,
            USER_ID,
            original.id,
            PaymentCorrection(
                version=0,
                amount="80.00",
                paid_on="2026-02-01",
                payment_method="BANK_TRANSFER",
                note="fixed",
            ),
        )
        session.commit()
        session.expire_all()

        row = session.execute(select(Payment).where(Payment.id == original.id)).scalar_one()
        assert row.amount == original.amount
        assert row.paid_on == original.paid_on
        assert row.payment_method == original.payment_method.value
        assert row.note == original.note
        assert row.is_corrected is True
        assert row.version == original.version + 1

    def test_omitted_fields_fall_back_to_original(self, ledger, create_payment):
        original = create_payment(
            amount="100.00", paid_on=date(2026, 2, 10), payment_method="CHECK", note="orig"
        )

        result = ledger.correct_payment(
            TENANT_ID, USER_ID, original.id, PaymentCorrection(version=0, amount="120.00")
        )

        assert result.correction.amount == Decimal("120.00")
        assert result.correction.paid_on == date(2026, 2, 10)
        assert result.correction.payment_method is PaymentMethod.CHECK
        assert result.correction.note == "orig"

    def test_second_correction_rejected_even_with_current_version(
        self, session, ledger, create_payment
    ):
        original = create_payment()
        ledger.correct_payment(
            TENANT_ID, USER_ID, original.id, PaymentCorrection(version=0, amount="110.00")
        )
        session.commit()

        for version in (0, 1, 2):
            with pytest.raises(PaymentAlreadyCorrectedError) as exc_info:
                ledger.correct_payment(
                    TENANT_ID,
                    USER_ID,
                    original.id,
                    PaymentCorrection(version=version, amount="120.00"),
                )
            assert exc_info.value.kind is ErrorKind.FORBIDDEN

    def test_correction_row_not_correctable(self, session, ledger, create_payment):
        original = create_payment()
        result = ledger.correct_payment(
            TENANT_ID, USER_ID, original.id, PaymentCorrection(version=0, amount="110.00")
        )
        session.commit()

        with pytest.raises(CorrectionTargetError):
            ledger.correct_payment(
                TENANT_ID,
                USER_ID,
                result.correction.id,
                PaymentCorrection(version=0, amount="120.00"),
            )

    def test_stale_version_is_conflict(self, ledger, create_payment, captured_logs):
        original = create_payment()

        with pytest.raises(OptimisticLockError) as exc_info:
            ledger.correct_payment(
                TENANT_ID, USER_ID, original.id, PaymentCorrection(version=3, amount="110.00")
            )
        assert exc_info.value.kind is ErrorKind.CONFLICT
        assert exc_info.value.expected_version == 3

        conflicts = [r for r in captured_logs() if r["message"] == "payment_correction_conflict"]
        assert conflicts[0]["stage"] == "read"
        assert conflicts[0]["stored_version"] == 0

    @pytest.mark.parametrize("version", ["0", None, True, -1, 1.0])
    def test_malformed_version_is_validation_error(
        self, session, ledger, create_payment, captured_logs, version
    ):
        original = create_payment()

        with pytest.raises(InvalidVersionError) as exc_info:
            ledger.correct_payment(
                TENANT_ID, USER_ID, original.id, PaymentCorrection(version=version, amount="110.00")
            )
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert exc_info.value.code == "INVALID_VERSION"

        assert not any(r["message"] == "payment_correction_conflict" for r in captured_logs())
        row = session.execute(select(Payment).where(Payment.id == original.id)).scalar_one()
        assert row.version == 0

    def test_malformed_version_checked_before_lookup(self, ledger):
        with pytest.raises(InvalidVersionError):
            ledger.correct_payment(
                TENANT_ID, USER_ID, uuid4(), PaymentCorrection(version="1", amount="1.00")
            )

    def test_other_tenant_cannot_see_payment(self, ledger, create_payment):
        original = create_payment()
        with pytest.raises(PaymentNotFoundError):
            ledger.correct_payment(
                OTHER_TENANT_ID, USER_ID, original.id, PaymentCorrection(version=0, amount="1.00")
            )

    def test_unknown_payment(self, ledger):
        with pytest.raises(PaymentNotFoundError):
            ledger.correct_payment(
                TENANT_ID, USER_ID, uuid4(), PaymentCorrection(version=0, amount="1.00")
            )

    def test_malformed_payment_id(self, ledger):
        with pytest.raises(PaymentNotFoundError):
            ledger.correct_payment(
                TENANT_ID, USER_ID, "not-a-uuid", PaymentCorrection(version=0, amount="1.00")
            )

    def test_invalid_override_rejected_before_write(self, session, ledger, create_payment):
        original = create_payment()
        with pytest.raises(InvalidAmountError):
            ledger.correct_payment(
                TENANT_ID, USER_ID, original.id, PaymentCorrection(version=0, amount="0")
            )
        session.rollback()

        rows = session.execute(select(Payment)).scalars().all()
        assert len(rows) == 1
        assert rows[0].version == 0

    def test_future_override_rejected(self, ledger, create_payment):
        original = create_payment()
        with pytest.raises(FutureDateError):
            ledger.correct_payment(
                TENANT_ID, USER_ID, original.id, PaymentCorrection(version=0, paid_on="2026-03-01")
            )

    def test_reason_too_long(self, ledger, create_payment):
        original = create_payment()
        with pytest.raises(TextTooLongError):
            ledger.correct_payment(
                TENANT_ID,
                USER_ID,
                original.id,
                PaymentCorrection(version=0, correction_reason="r" * 501),
            )

    def test_correction_logged(self, ledger, create_payment, captured_logs):
        original = create_payment()
        result = ledger.correct_payment(
            TENANT_ID, USER_ID, original.id, PaymentCorrection(version=0, amount="110.00")
        )

        records = [r for r in captured_logs() if r["message"] == "payment_corrected"]
        assert len(records) == 1
        assert records[0]["original_payment_id"] == str(original.id)
        assert records[0]["correction_payment_id"] == str(result.correction.id)
        assert records[0]["new_version"] == 1
        assert "amount" not in records[0]
