"""
PaymentLedger -- membership payments and their single auditable correction.

Responsibility:
    Records membership payments and applies corrections.  A correction is a
    new payment row that supersedes the original; the original stays as an
    immutable audit record and only has ``is_corrected`` set and ``version``
    bumped.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes MonthLockService for the
    write gate and a MemberDirectory for member ownership.

Invariants enforced:
    - Single correction: an original with ``is_corrected`` set is never
      corrected again, whatever version the caller sends.
    - Optimistic concurrency: the caller's version must equal the stored
      one when read AND when written.  The write is a conditional UPDATE
      (``WHERE version = :expected AND is_corrected = false``); zero rows
      affected means another writer won and the whole transaction is
      abandoned.
    - Month lock: checked before any write and re-checked inside the write
      step, for the original's month and for the corrected date's month.
    - The original's amount, paid_on, payment_method and note are never
      written by a correction.
    - Flush-only: the correction's insert and update reach the database in
      the caller's single transaction.

Failure modes:
    - PaymentNotFoundError: unknown id, or a payment of another tenant.
    - PaymentAlreadyCorrectedError: original already superseded.
    - CorrectionTargetError: the target is itself a correction.
    - OptimisticLockError: stale version, at read time or at write time.
    - MonthLockedError: business date in a locked month.
    - ValidationError subclasses for malformed input (before any write).
    - MissingScopeError: empty tenant, branch or user id.

Audit relevance:
    ``payment_created`` and ``payment_corrected`` carry ids, method and
    dates.  Amounts and notes are never logged.  Lost races are logged at
    WARNING as ``payment_correction_conflict``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from revenue_kernel.domain.calendar import month_key_of
from revenue_kernel.domain.clock import Clock
from revenue_kernel.domain.dtos import (
    CorrectionResult,
    PaymentCorrection,
    PaymentDraft,
    PaymentDTO,
)
from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.domain.validation import (
    parse_civil_date,
    require_scope,
    validate_amount,
    validate_not_future,
    validate_text,
    validate_version,
)
from revenue_kernel.exceptions import (
    CorrectionTargetError,
    OptimisticLockError,
    PaymentAlreadyCorrectedError,
    PaymentNotFoundError,
)
from revenue_kernel.logging_config import get_logger
from revenue_kernel.models.mapping import payment_to_dto
from revenue_kernel.models.payment import Payment
from revenue_kernel.services.base import BaseService
from revenue_kernel.services.directories import MemberDirectory, SqlMemberDirectory
from revenue_kernel.services.month_lock_service import MonthLockService

logger = get_logger("services.payment_ledger")

DEFAULT_MAX_AMOUNT = Decimal("999999.99")
DEFAULT_TEXT_MAX_LENGTH = 500


@dataclass(frozen=True)
class _CorrectedValues:
    """Validated correction fields.  None means "not supplied" until resolved."""

    amount: Decimal | None
    paid_on: date | None
    payment_method: PaymentMethod | None
    note: str | None
    correction_reason: str | None


class PaymentLedger(BaseService[Payment]):
    """
    Write side of membership payments.

    Contract:
        ``create_payment`` inserts an original; ``correct_payment`` inserts a
        correction and marks the original superseded.  Both return frozen
        DTOs and flush within the caller's transaction.

    Guarantees:
        - A correction's omitted fields take the original's values, never
          null.
        - A failed correction leaves nothing behind once the caller rolls
          back (the conditional UPDATE runs before the INSERT, so a lost
          race does not even reach the insert).

    Non-goals:
        - No automatic retry on conflict; the caller re-fetches and resubmits.
        - No delete path for payments.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        month_locks: MonthLockService | None = None,
        members: MemberDirectory | None = None,
        max_amount: Decimal = DEFAULT_MAX_AMOUNT,
        note_max_length: int = DEFAULT_TEXT_MAX_LENGTH,
        reason_max_length: int = DEFAULT_TEXT_MAX_LENGTH,
    ):
        super().__init__(session, clock)
        self._month_locks = month_locks or MonthLockService(session, self._clock)
        self._members = members or SqlMemberDirectory(session)
        self._max_amount = max_amount
        self._note_max_length = note_max_length
        self._reason_max_length = reason_max_length

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_payment(
        self,
        tenant_id: str,
        branch_id: str,
        user_id: str,
        draft: PaymentDraft,
    ) -> PaymentDTO:
        """
        Record a membership payment.

        Preconditions:
            tenant_id, branch_id, user_id non-empty; amount in (0, max];
            paid_on not after today (UTC); member belongs to the tenant.
        Raises:
            MissingScopeError, ValidationError subclasses, MemberNotFoundError,
            MonthLockedError.
        """
        require_scope(tenant_id=tenant_id, branch_id=branch_id, user_id=user_id)
        amount = validate_amount(draft.amount, self._max_amount)
        paid_on = validate_not_future(
            parse_civil_date(draft.paid_on), self._clock.today_utc()
        )
        method = PaymentMethod.parse(draft.payment_method)
        note = validate_text("note", draft.note, self._note_max_length)

        self._members.require_member(tenant_id, draft.member_id)
        self._month_locks.assert_date_open(tenant_id, branch_id, paid_on, "create payment")

        now = self._clock.now_utc()
        payment = Payment(
            tenant_id=tenant_id,
            branch_id=branch_id,
            member_id=str(draft.member_id),
            amount=amount,
            paid_on=paid_on,
            payment_method=method.value,
            note=note,
            is_correction=False,
            is_corrected=False,
            version=0,
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(payment)
        self.session.flush()

        logger.info(
            "payment_created",
            extra={
                "payment_id": str(payment.id),
                "tenant_id": tenant_id,
                "branch_id": branch_id,
                "member_id": payment.member_id,
                "payment_method": method.value,
                "paid_on": paid_on.isoformat(),
                "actor_user_id": user_id,
            },
        )
        return payment_to_dto(payment)

    # ------------------------------------------------------------------
    # Correct
    # ------------------------------------------------------------------

    def correct_payment(
        self,
        tenant_id: str,
        user_id: str,
        payment_id: str | UUID,
        correction: PaymentCorrection,
    ) -> CorrectionResult:
        """
        Supersede a payment with a correction row.

        Steps:
            1. Load the original within the tenant.
            2. Reject if already corrected (single-correction rule).
            3. Reject if the caller's version is stale.
            4. Reject if the original's month or the corrected month is locked.
            5. Conditionally update the original, then insert the correction.

        Returns:
            CorrectionResult with the new correction row and the original as
            it stands after the update.

        Raises:
            PaymentNotFoundError, PaymentAlreadyCorrectedError,
            CorrectionTargetError, OptimisticLockError, MonthLockedError,
            ValidationError subclasses, MissingScopeError.
        """
        require_scope(tenant_id=tenant_id, user_id=user_id)
        overrides = self._validate_overrides(correction)

        original = self._load_for_correction(tenant_id, payment_id, correction.version)
        values = _CorrectedValues(
            amount=overrides.amount if overrides.amount is not None else original.amount,
            paid_on=overrides.paid_on if overrides.paid_on is not None else original.paid_on,
            payment_method=(
                overrides.payment_method
                if overrides.payment_method is not None
                else PaymentMethod(original.payment_method)
            ),
            note=overrides.note if overrides.note is not None else original.note,
            correction_reason=overrides.correction_reason,
        )

        self._assert_correction_months_open(original, values.paid_on)
        return self._write_correction(original, correction.version, values, user_id)

    def _validate_overrides(self, correction: PaymentCorrection) -> _CorrectedValues:
        """Validate supplied overrides; None fields stay None."""
        validate_version(correction.version)
        amount = (
            validate_amount(correction.amount, self._max_amount)
            if correction.amount is not None
            else None
        )
        paid_on = None
        if correction.paid_on is not None:
            paid_on = validate_not_future(
                parse_civil_date(correction.paid_on), self._clock.today_utc()
            )
        method = (
            PaymentMethod.parse(correction.payment_method)
            if correction.payment_method is not None
            else None
        )
        note = validate_text("note", correction.note, self._note_max_length)
        reason = validate_text(
            "correction_reason", correction.correction_reason, self._reason_max_length
        )
        return _CorrectedValues(
            amount=amount,
            paid_on=paid_on,
            payment_method=method,
            note=note,
            correction_reason=reason,
        )

    def _load_for_correction(
        self, tenant_id: str, payment_id: str | UUID, expected_version: int
    ) -> Payment:
        """Steps 1-3: load within tenant, single-correction rule, version check."""
        try:
            payment_uuid = payment_id if isinstance(payment_id, UUID) else UUID(str(payment_id))
        except ValueError as e:
            raise PaymentNotFoundError(str(payment_id)) from e

        original = self.session.execute(
            select(Payment).where(
                Payment.id == payment_uuid,
                Payment.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if original is None:
            raise PaymentNotFoundError(str(payment_id))

        if original.is_correction:
            raise CorrectionTargetError(str(original.id))

        if original.is_corrected:
            raise PaymentAlreadyCorrectedError(str(original.id))

        if original.version != expected_version:
            logger.warning(
                "payment_correction_conflict",
                extra={
                    "payment_id": str(original.id),
                    "expected_version": expected_version,
                    "stored_version": original.version,
                    "stage": "read",
                },
            )
            raise OptimisticLockError("Payment", str(original.id), expected_version)

        return original

    def _assert_correction_months_open(self, original: Payment, new_paid_on: date) -> None:
        """Both the month money leaves and the month it lands in must be open."""
        months = {month_key_of(original.paid_on), month_key_of(new_paid_on)}
        for month in sorted(months):
            self._month_locks.assert_month_open(
                original.tenant_id, original.branch_id, month, "correct payment"
            )

    def _write_correction(
        self,
        original: Payment,
        expected_version: int,
        values: _CorrectedValues,
        user_id: str,
    ) -> CorrectionResult:
        """
        Step 5: lock re-check, compare-and-swap on the original, insert.

        Runs in the caller's transaction.  Any exception raised here leaves
        the transaction to be rolled back by the caller.
        """
        # A lock committed after the pre-check must still stop the write.
        self._assert_correction_months_open(original, values.paid_on)

        now = self._clock.now_utc()
        result = self.session.execute(
            update(Payment)
            .where(
                Payment.id == original.id,
                Payment.tenant_id == original.tenant_id,
                Payment.version == expected_version,
                Payment.is_corrected.is_(False),
            )
            .values(
                is_corrected=True,
                version=Payment.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "payment_correction_conflict",
                extra={
                    "payment_id": str(original.id),
                    "expected_version": expected_version,
                    "rows_affected": result.rowcount,
                    "stage": "write",
                },
            )
            raise OptimisticLockError("Payment", str(original.id), expected_version)

        correction_row = Payment(
            tenant_id=original.tenant_id,
            branch_id=original.branch_id,
            member_id=original.member_id,
            amount=values.amount,
            paid_on=values.paid_on,
            payment_method=values.payment_method.value,
            note=values.note,
            is_correction=True,
            corrected_payment_id=original.id,
            is_corrected=False,
            correction_reason=values.correction_reason,
            version=0,
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(correction_row)
        self.session.flush()
        self.session.refresh(original)

        logger.info(
            "payment_corrected",
            extra={
                "original_payment_id": str(original.id),
                "correction_payment_id": str(correction_row.id),
                "tenant_id": original.tenant_id,
                "branch_id": original.branch_id,
                "member_id": original.member_id,
                "payment_method": values.payment_method.value,
                "paid_on": values.paid_on.isoformat(),
                "original_paid_on": original.paid_on.isoformat(),
                "new_version": original.version,
                "actor_user_id": user_id,
            },
        )
        return CorrectionResult(
            correction=payment_to_dto(correction_row),
            original=payment_to_dto(original, corrected_by_id=correction_row.id),
        )
