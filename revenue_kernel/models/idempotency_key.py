"""
Module: revenue_kernel.models.idempotency_key
Responsibility: Records which payment a client-supplied idempotency key created.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - uq_idempotency_tenant_key: one live row per (tenant_id, key); a
      concurrent duplicate insert fails on this constraint.
    - The row is written in the same transaction as its payment, so a key
      never points at a payment that was rolled back.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import Base, UUIDString
from revenue_kernel.db.types import UTCDateTime


class IdempotencyKey(Base):
    __tablename__ = "idempotency_keys"

    __table_args__ = (
        UniqueConstraint("tenant_id", "key", name="uq_idempotency_tenant_key"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    key: Mapped[str] = mapped_column(String(255), nullable=False)

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self) -> str:
        return f"<IdempotencyKey {self.tenant_id}:{self.key}>"
