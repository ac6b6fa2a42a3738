"""
Pytest fixtures for the revenue kernel test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path by default)
- Sessions and a tracked session factory for multi-threaded tests
- A deterministic clock pinned to 2026-02-15 12:00 UTC
- Service fixtures and factories for tenants, members and payments
- captured_logs for asserting structured log output

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  SQLite.  Tables are dropped and recreated around every test.
"""

import json
import logging
import os
import threading
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from revenue_config import RevenueSettings
from revenue_kernel.db.engine import build_engine, create_tables, drop_tables
from revenue_kernel.domain.clock import DeterministicClock
from revenue_kernel.domain.dtos import PaymentDraft
from revenue_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from revenue_kernel.models.tenant import Member, TenantSettings
from revenue_kernel.services.directories import SqlTenantDirectory
from revenue_kernel.services.month_lock_service import MonthLockService
from revenue_kernel.services.payment_ledger import PaymentLedger
from revenue_kernel.services.product_sale_service import ProductSaleService
from revenue_services.back_office import RevenueBackOffice

TENANT_ID = "tenant-a"
OTHER_TENANT_ID = "tenant-b"
BRANCH_ID = "branch-1"
USER_ID = "user-admin"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as exercising real database locking"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture revenue_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.create_payment(...)
            logs = captured_logs()
            assert any(r["message"] == "payment_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("revenue_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """One database per test: SQLite file, or DATABASE_URL when set."""
    database_url = os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'revenue.db'}"
    eng = build_engine(database_url, pool_size=10, max_overflow=10)
    drop_tables(eng)
    create_tables(eng)
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """Session that commits for real; each test has its own database."""
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture
def tracked_session_factory(session_factory):
    """Session factory for worker threads; closes every session it handed out."""
    created: list[Session] = []
    lock = threading.Lock()

    def _factory() -> Session:
        s = session_factory()
        with lock:
            created.append(s)
        return s

    yield _factory

    for s in created:
        s.close()


# =============================================================================
# Clock, settings, services
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing (2026-02-15 12:00 UTC)."""
    return DeterministicClock()


@pytest.fixture
def settings() -> RevenueSettings:
    return RevenueSettings()


@pytest.fixture
def month_lock_service(session, deterministic_clock) -> MonthLockService:
    return MonthLockService(session, deterministic_clock)


@pytest.fixture
def ledger(session, deterministic_clock, month_lock_service) -> PaymentLedger:
    return PaymentLedger(session, deterministic_clock, month_locks=month_lock_service)


@pytest.fixture
def tenant_directory(session, settings) -> SqlTenantDirectory:
    return SqlTenantDirectory(session, settings.default_timezone, settings.currency)


@pytest.fixture
def product_sale_service(
    session, tenant_directory, deterministic_clock, month_lock_service
) -> ProductSaleService:
    return ProductSaleService(
        session, tenant_directory, deterministic_clock, month_locks=month_lock_service
    )


@pytest.fixture
def back_office(settings, session_factory, deterministic_clock) -> RevenueBackOffice:
    return RevenueBackOffice(settings, session_factory, deterministic_clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_tenant(session):
    """Factory: store a tenant's timezone / currency settings."""

    def _create(tenant_id: str = TENANT_ID, timezone: str | None = "Europe/Istanbul",
                currency: str | None = "TRY") -> TenantSettings:
        row = TenantSettings(tenant_id=tenant_id, timezone=timezone, currency=currency)
        session.add(row)
        session.commit()
        return row

    return _create


@pytest.fixture
def create_member(session):
    """Factory: a member of a tenant/branch; returns the member id as str."""

    def _create(tenant_id: str = TENANT_ID, branch_id: str = BRANCH_ID) -> str:
        member = Member(tenant_id=tenant_id, branch_id=branch_id, full_name="Test Member")
        session.add(member)
        session.commit()
        return str(member.id)

    return _create


@pytest.fixture
def member_id(create_member) -> str:
    return create_member()


@pytest.fixture
def create_payment(session, ledger, member_id):
    """
    Factory: record and commit a payment through the ledger.

    Usage:
        payment = create_payment(amount="100.00", paid_on=date(2026, 2, 10))
    """

    def _create(
        amount: Decimal | str = "100.00",
        paid_on: date | str = date(2026, 2, 10),
        payment_method: str = "CASH",
        note: str | None = None,
        tenant_id: str = TENANT_ID,
        branch_id: str = BRANCH_ID,
        member: str | None = None,
    ):
        payment = ledger.create_payment(
            tenant_id,
            branch_id,
            USER_ID,
            PaymentDraft(
                member_id=member or member_id,
                amount=amount,
                paid_on=paid_on,
                payment_method=payment_method,
                note=note,
            ),
        )
        session.commit()
        return payment

    return _create


@pytest.fixture
def new_id() -> str:
    return str(uuid4())
