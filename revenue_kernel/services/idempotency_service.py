"""
IdempotencyService -- client-supplied keys for create-payment retries.

Responsibility:
    Remembers which payment a (tenant, key) pair created so that a retried
    request returns the same payment instead of recording the money twice.

Architecture position:
    Kernel > Services -- imperative shell.  Used by the facade around
    PaymentLedger.create_payment; the ledger itself is unaware of keys.

Invariants enforced:
    - A key is live until ``expires_at``; an expired key is deleted on
      lookup and the request proceeds as new.
    - The key row is flushed in the same transaction as its payment.
    - Keys are tenant-scoped: the same key in two tenants is two keys.

Failure modes:
    - IntegrityError (uq_idempotency_tenant_key) when a concurrent request
      recorded the same key first.  The caller rolls back and replays the
      winner's payment.
"""

from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_kernel.domain.clock import Clock
from revenue_kernel.logging_config import get_logger
from revenue_kernel.models.idempotency_key import IdempotencyKey
from revenue_kernel.services.base import BaseService

logger = get_logger("services.idempotency")

DEFAULT_TTL_HOURS = 24


class IdempotencyService(BaseService[IdempotencyKey]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ttl_hours: int = DEFAULT_TTL_HOURS,
    ):
        super().__init__(session, clock)
        self._ttl = timedelta(hours=ttl_hours)

    def find_live(self, tenant_id: str, key: str) -> UUID | None:
        """Payment id recorded under a live key, or None (expired keys are purged)."""
        row = self.session.execute(
            select(IdempotencyKey).where(
                IdempotencyKey.tenant_id == tenant_id,
                IdempotencyKey.key == key,
            )
        ).scalar_one_or_none()
        if row is None:
            return None

        if row.is_expired(self._clock.now_utc()):
            self.session.delete(row)
            self.session.flush()
            logger.info("idempotency_key_expired", extra={"tenant_id": tenant_id})
            return None

        return row.payment_id

    def record(self, tenant_id: str, key: str, payment_id: UUID) -> None:
        now = self._clock.now_utc()
        self.session.add(
            IdempotencyKey(
                tenant_id=tenant_id,
                key=key,
                payment_id=payment_id,
                created_at=now,
                expires_at=now + self._ttl,
            )
        )
        self.session.flush()
