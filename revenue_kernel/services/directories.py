"""
Directories -- SQL-backed resolution of out-of-core collaborators.

Responsibility:
    Answers the two questions the revenue engine asks about the wider back
    office: "does this member belong to this tenant?" and "which timezone and
    currency does this tenant use?".

Architecture position:
    Kernel > Services.  Read-only; the protocols let callers substitute any
    other source (an HTTP client, a cache) without touching the ledger.

Failure modes:
    - MemberNotFoundError when the member is missing or belongs to another
      tenant.  Existence in another tenant is never revealed.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_kernel.domain.calendar import TimeZoneCalendar
from revenue_kernel.domain.dtos import TenantProfile
from revenue_kernel.exceptions import MemberNotFoundError
from revenue_kernel.models.tenant import Member, TenantSettings


class MemberDirectory(Protocol):
    def require_member(self, tenant_id: str, member_id: str) -> str:
        """Return the member's branch id, or raise MemberNotFoundError."""
        ...


class TenantDirectory(Protocol):
    def profile(self, tenant_id: str) -> TenantProfile: ...


class SqlMemberDirectory:
    def __init__(self, session: Session):
        self.session = session

    def require_member(self, tenant_id: str, member_id: str) -> str:
        try:
            member_uuid = UUID(str(member_id))
        except ValueError as e:
            raise MemberNotFoundError(str(member_id)) from e

        branch_id = self.session.execute(
            select(Member.branch_id).where(
                Member.id == member_uuid,
                Member.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if branch_id is None:
            raise MemberNotFoundError(str(member_id))
        return branch_id


class SqlTenantDirectory:
    """
    Tenant settings with configured fallbacks.

    A tenant without a settings row, or with an empty timezone/currency,
    gets the defaults passed in at construction.
    """

    def __init__(self, session: Session, default_timezone: str, default_currency: str):
        self.session = session
        self._default_timezone = default_timezone
        self._default_currency = default_currency

    def profile(self, tenant_id: str) -> TenantProfile:
        row = self.session.execute(
            select(TenantSettings).where(TenantSettings.tenant_id == tenant_id)
        ).scalar_one_or_none()
        timezone_name = (row.timezone if row is not None else None) or self._default_timezone
        currency = (row.currency if row is not None else None) or self._default_currency
        return TenantProfile(tenant_id=tenant_id, timezone=timezone_name, currency=currency)

    def calendar(self, tenant_id: str) -> TimeZoneCalendar:
        return TimeZoneCalendar(self.profile(tenant_id).timezone)
