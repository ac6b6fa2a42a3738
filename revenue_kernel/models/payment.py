"""
Module: revenue_kernel.models.payment
Responsibility: ORM persistence for membership payments and their corrections.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - A correction row (is_correction=True) always points at the original it
      supersedes via corrected_payment_id.
    - At most one correction per original: corrected_payment_id is unique.
    - The original's amount / paid_on / payment_method / note are never
      rewritten; a correction only flips is_corrected and bumps version.
    - version starts at 0 and moves by exactly 1 per committed correction.

Audit relevance:
    The original row and its correction together form the audit trail of
    every change to money received.  Neither is ever deleted.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import TrackedBase, UUIDString
from revenue_kernel.db.types import MONEY_PRECISION, MONEY_SCALE
from revenue_kernel.domain.payment_method import PaymentMethod


class Payment(TrackedBase):
    """
    Money received for a membership.

    Contract:
        Created by PaymentLedger.create_payment or, for corrections, by
        PaymentLedger.correct_payment.  Scoped by tenant_id and branch_id;
        every query filters by tenant.

    Guarantees:
        - uq_payment_single_correction: one correction per original.
        - paid_on is a civil date; its month is read as written.

    Non-goals:
        - No delete path.  A wrong payment is corrected, never removed.
    """

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("corrected_payment_id", name="uq_payment_single_correction"),
        Index("idx_payment_tenant_branch_paid_on", "tenant_id", "branch_id", "paid_on"),
        Index("idx_payment_tenant_member", "tenant_id", "member_id"),
        Index("idx_payment_tenant_corrected", "tenant_id", "is_corrected"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)

    member_id: Mapped[str] = mapped_column(String(64), nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE),
        nullable=False,
    )

    # Business date the payment applies to
    paid_on: Mapped[date] = mapped_column(Date, nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(
        String(20),
        nullable=False,
    )

    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_correction: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Set only on correction rows
    corrected_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=True,
    )

    # Set on the original once its correction is committed; never cleared
    is_corrected: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    correction_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    def __repr__(self) -> str:
        kind = "correction" if self.is_correction else "payment"
        return f"<Payment {kind} {self.id} v{self.version}>"

    @property
    def counts_as_revenue(self) -> bool:
        """Superseded originals are excluded from every revenue sum."""
        return not self.is_corrected
