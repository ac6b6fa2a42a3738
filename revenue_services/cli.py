"""
revenue-admin: operator command line for the revenue engine.

Usage:
    revenue-admin [--config PATH] [--db-url URL] <command> [options]

Examples:
    # Create tables in the configured database
    revenue-admin init-db

    # Close February for a branch, then reopen it
    revenue-admin lock --tenant t1 --branch b1 --month 2026-02 --user u1
    revenue-admin unlock --tenant t1 --branch b1 --month 2026-02

    # Reports (JSON on stdout)
    revenue-admin report monthly --tenant t1 --branch b1 --month 2026-02
    revenue-admin report trend --tenant t1 --branch b1 --months 12
    revenue-admin report daily --tenant t1 --branch b1 --month 2026-02
    revenue-admin report methods --tenant t1 --branch b1 --month 2026-02

Exit status: 0 on success, 1 on a revenue error (JSON error body on
stderr), 2 on bad arguments.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Sequence


def _scope(parser: argparse.ArgumentParser, month: bool = True) -> None:
    parser.add_argument("--tenant", required=True, help="Tenant id.")
    parser.add_argument("--branch", required=True, help="Branch id.")
    if month:
        parser.add_argument("--month", required=True, help="Month key (YYYY-MM).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="revenue-admin",
        description="Operate month locks and read revenue reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Settings YAML (default: REVENUE_CONFIG_PATH env or packaged defaults).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL; overrides the settings file and DATABASE_URL.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create all tables.")

    lock = commands.add_parser("lock", help="Lock a month for a branch.")
    _scope(lock)
    lock.add_argument("--user", required=True, help="Id of the user locking the month.")

    unlock = commands.add_parser("unlock", help="Remove a month lock.")
    _scope(unlock)
    unlock.add_argument("--user", default=None, help="Id of the user unlocking the month.")

    locks = commands.add_parser("locks", help="List a branch's locked months.")
    _scope(locks, month=False)

    report = commands.add_parser("report", help="Revenue reports.")
    kinds = report.add_subparsers(dest="report", required=True)
    for name in ("monthly", "daily", "methods"):
        _scope(kinds.add_parser(name))
    trend = kinds.add_parser("trend")
    _scope(trend, month=False)
    trend.add_argument("--months", type=int, default=None, help="Window size (default from settings).")

    return parser


def _run(args: argparse.Namespace) -> Any:
    from dataclasses import replace

    from revenue_config import get_settings
    from revenue_kernel.db.engine import create_tables, init_engine_from_url
    from revenue_kernel.logging_config import configure_logging
    from revenue_services.back_office import RevenueBackOffice

    settings = get_settings(args.config)
    if args.db_url:
        settings = replace(settings, database_url=args.db_url)

    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )

    if args.command == "init-db":
        create_tables(engine)
        return {"status": "ok", "dialect": engine.dialect.name}

    office = RevenueBackOffice(settings)
    if args.command == "lock":
        return office.lock_month(args.tenant, args.branch, args.month, args.user)
    if args.command == "unlock":
        return office.unlock_month(args.tenant, args.branch, args.month, args.user)
    if args.command == "locks":
        return office.list_month_locks(args.tenant, args.branch)

    if args.report == "monthly":
        return office.get_monthly_revenue(args.tenant, args.branch, args.month)
    if args.report == "trend":
        return office.get_revenue_trend(args.tenant, args.branch, args.months)
    if args.report == "daily":
        return office.get_daily_breakdown(args.tenant, args.branch, args.month)
    return office.get_payment_method_breakdown(args.tenant, args.branch, args.month)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    from revenue_kernel.exceptions import RevenueKernelError
    from revenue_services.back_office import error_payload

    try:
        result = _run(args)
    except RevenueKernelError as e:
        print(json.dumps(error_payload(e)), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
