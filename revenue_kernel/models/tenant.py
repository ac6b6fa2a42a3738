"""
Module: revenue_kernel.models.tenant
Responsibility: Minimal collaborator tables for the out-of-core tenant and
    member directories.  Only the fields the revenue engine reads are kept:
    a tenant's timezone and currency, a member's tenant and branch.
Architecture position: Kernel > Models.  May import from db/ only.

Tenant and member CRUD lives elsewhere; these rows are read, never written,
by the engine's services.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from revenue_kernel.db.base import Base


class TenantSettings(Base):
    """Per-tenant calendar and currency.  Absent row means configured defaults."""

    __tablename__ = "tenant_settings"

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # IANA zone name, e.g. Europe/Istanbul
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # ISO 4217
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    def __repr__(self) -> str:
        return f"<TenantSettings {self.tenant_id} {self.timezone}>"


class Member(Base):
    """Gym member, reduced to its ownership scope."""

    __tablename__ = "members"

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)

    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<Member {self.id}>"
