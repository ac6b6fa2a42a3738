"""
Module: revenue_kernel.models.revenue_month_lock
Responsibility: ORM persistence for month-level write locks on financial records.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - The existence of a row for (tenant_id, branch_id, month) means no
      payment or product sale whose business date falls in that month may be
      created, corrected or deleted.
    - uq_revenue_month_lock: at most one row per tenant, branch and month, so
      the gate check is a single keyed lookup.
"""

from datetime import datetime

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import Base
from revenue_kernel.db.types import UTCDateTime


class RevenueMonthLock(Base):
    """
    Lock row freezing one branch's financial month.

    Created and removed by MonthLockService.  Removing the row reopens the
    month.
    """

    __tablename__ = "revenue_month_locks"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "branch_id", "month", name="uq_revenue_month_lock"
        ),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # YYYY-MM
    month: Mapped[str] = mapped_column(String(7), nullable=False)

    locked_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    locked_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<RevenueMonthLock {self.branch_id} {self.month}>"
