"""
Module: revenue_kernel.selectors.revenue_selector
Responsibility: Read-only revenue aggregation: monthly totals, N-month trend,
    daily breakdown, payment-method breakdown and the ranged membership
    report.  Recomputes from source rows on every call.
Architecture position: Kernel > Selectors.  Reads Payment, ProductSale and
    RevenueMonthLock; never writes.

Invariants enforced:
    - Membership revenue sums payments with ``is_corrected = false``.  That
      includes correction rows and excludes the originals they replaced, so
      a correction moves the total by (new - old) and nothing is counted
      twice.
    - Membership rows are bucketed by their civil ``paid_on`` as written.
      Product sales are bucketed by the tenant-local day/month of
      ``sold_at`` via the TimeZoneCalendar.
    - Trend and daily series are dense: every month / day in the window
      appears, zero-filled.
    - Sums are Decimal throughout; no floats.

Failure modes:
    - InvalidMonthKeyError, InvalidDateError, InvalidTrendWindowError,
      InvalidReportGroupingError for malformed input.

Scaling note:
    Work is O(rows in range) per call.  There is no aggregate cache and
    therefore nothing to invalidate.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from revenue_kernel.domain.calendar import (
    TimeZoneCalendar,
    month_first_day,
    month_key_of,
    month_last_day,
    week_start,
)
from revenue_kernel.domain.clock import Clock, SystemClock
from revenue_kernel.domain.dtos import (
    DayRevenue,
    MethodBreakdown,
    MethodTotal,
    MonthRevenue,
    RevenueBucket,
    RevenueReport,
)
from revenue_kernel.domain.payment_method import PaymentMethod
from revenue_kernel.domain.validation import (
    parse_civil_date,
    validate_date_range,
    validate_month_key,
    validate_trend_window,
)
from revenue_kernel.domain.values import ZERO
from revenue_kernel.exceptions import InvalidReportGroupingError
from revenue_kernel.models.payment import Payment
from revenue_kernel.models.product_sale import ProductSale
from revenue_kernel.models.revenue_month_lock import RevenueMonthLock
from revenue_kernel.selectors.base import BaseSelector

REPORT_GROUPINGS = ("day", "week", "month")
DEFAULT_TREND_MAX_MONTHS = 24

# civil date -> report bucket key
_BUCKET_KEYS: dict[str, Callable[[date], str]] = {
    "day": date.isoformat,
    "week": lambda d: week_start(d).isoformat(),
    "month": month_key_of,
}


def _sum_by(rows: Iterable[tuple], key: Callable) -> dict:
    totals: dict = defaultdict(lambda: ZERO)
    for row in rows:
        totals[key(row)] += row[0]
    return totals


class RevenueSelector(BaseSelector[Payment]):
    """
    Revenue read model for one tenant calendar.

    Contract:
        Constructed per request with the tenant's TimeZoneCalendar.  All
        methods return frozen DTOs with Decimal amounts; serialization to
        2-decimal strings happens at the edge.
    """

    def __init__(
        self,
        session: Session,
        calendar: TimeZoneCalendar,
        clock: Clock | None = None,
        trend_max_months: int = DEFAULT_TREND_MAX_MONTHS,
    ):
        super().__init__(session)
        self.calendar = calendar
        self._clock = clock or SystemClock()
        self._trend_max_months = trend_max_months

    # ------------------------------------------------------------------
    # Source rows
    # ------------------------------------------------------------------

    def _membership_rows(
        self,
        tenant_id: str,
        branch_id: str | None,
        start: date,
        end: date,
        payment_method: PaymentMethod | None = None,
    ) -> list[tuple[Decimal, date, str]]:
        """(amount, paid_on, method) of live payments with start <= paid_on <= end."""
        stmt = select(Payment.amount, Payment.paid_on, Payment.payment_method).where(
            Payment.tenant_id == tenant_id,
            Payment.is_corrected.is_(False),
            Payment.paid_on >= start,
            Payment.paid_on <= end,
        )
        if branch_id:
            stmt = stmt.where(Payment.branch_id == branch_id)
        if payment_method is not None:
            stmt = stmt.where(Payment.payment_method == payment_method.value)
        return [tuple(row) for row in self.session.execute(stmt)]

    def _product_rows(
        self,
        tenant_id: str,
        branch_id: str,
        start_utc: datetime,
        end_utc: datetime,
    ) -> list[tuple[Decimal, datetime, str]]:
        """(total_amount, sold_at, method) of sales with start <= sold_at < end."""
        stmt = select(
            ProductSale.total_amount, ProductSale.sold_at, ProductSale.payment_method
        ).where(
            ProductSale.tenant_id == tenant_id,
            ProductSale.branch_id == branch_id,
            ProductSale.sold_at >= start_utc,
            ProductSale.sold_at < end_utc,
        )
        return [tuple(row) for row in self.session.execute(stmt)]

    def _locked_months(self, tenant_id: str, branch_id: str, months: list[str]) -> set[str]:
        rows = self.session.execute(
            select(RevenueMonthLock.month).where(
                RevenueMonthLock.tenant_id == tenant_id,
                RevenueMonthLock.branch_id == branch_id,
                RevenueMonthLock.month.in_(months),
            )
        ).scalars()
        return set(rows)

    # ------------------------------------------------------------------
    # Month series
    # ------------------------------------------------------------------

    def _month_series(self, tenant_id: str, branch_id: str, months: list[str]) -> list[MonthRevenue]:
        """Dense per-month sums for consecutive ascending month keys."""
        first, last = months[0], months[-1]
        membership = _sum_by(
            self._membership_rows(
                tenant_id, branch_id, month_first_day(first), month_last_day(last)
            ),
            key=lambda row: month_key_of(row[1]),
        )
        start_utc, _ = self.calendar.month_range_utc(first)
        _, end_utc = self.calendar.month_range_utc(last)
        products = _sum_by(
            self._product_rows(tenant_id, branch_id, start_utc, end_utc),
            key=lambda row: self.calendar.month_key(row[1]),
        )
        locked = self._locked_months(tenant_id, branch_id, months)

        return [
            MonthRevenue(
                month=month,
                membership_revenue=membership.get(month, ZERO),
                product_revenue=products.get(month, ZERO),
                locked=month in locked,
            )
            for month in months
        ]

    def monthly_revenue(self, tenant_id: str, branch_id: str, month: str) -> MonthRevenue:
        """Membership + product revenue of one tenant-local month, with lock state."""
        validate_month_key(month)
        return self._month_series(tenant_id, branch_id, [month])[0]

    def revenue_trend(self, tenant_id: str, branch_id: str, months: int) -> list[MonthRevenue]:
        """The last ``months`` tenant-local months, oldest first, zero-filled."""
        validate_trend_window(months, self._trend_max_months)
        keys = self.calendar.trailing_months(months, self._clock.now_utc())
        return self._month_series(tenant_id, branch_id, keys)

    # ------------------------------------------------------------------
    # Daily
    # ------------------------------------------------------------------

    def daily_breakdown(self, tenant_id: str, branch_id: str, month: str) -> list[DayRevenue]:
        """One entry per calendar day of the month, zero days included."""
        validate_month_key(month)
        days = self.calendar.days_in_month(month)

        membership = _sum_by(
            self._membership_rows(tenant_id, branch_id, days[0], days[-1]),
            key=lambda row: row[1],
        )
        start_utc, end_utc = self.calendar.month_range_utc(month)
        products = _sum_by(
            self._product_rows(tenant_id, branch_id, start_utc, end_utc),
            key=lambda row: self.calendar.local_date(row[1]),
        )

        return [
            DayRevenue(
                date=day,
                membership_revenue=membership.get(day, ZERO),
                product_revenue=products.get(day, ZERO),
            )
            for day in days
        ]

    # ------------------------------------------------------------------
    # Payment methods
    # ------------------------------------------------------------------

    def payment_method_breakdown(
        self, tenant_id: str, branch_id: str, month: str
    ) -> MethodBreakdown:
        """Per-method sums for membership and product revenue; idle methods omitted."""
        validate_month_key(month)

        membership = _sum_by(
            self._membership_rows(
                tenant_id, branch_id, month_first_day(month), month_last_day(month)
            ),
            key=lambda row: row[2],
        )
        start_utc, end_utc = self.calendar.month_range_utc(month)
        products = _sum_by(
            self._product_rows(tenant_id, branch_id, start_utc, end_utc),
            key=lambda row: row[2],
        )

        def ordered(totals: dict) -> tuple[MethodTotal, ...]:
            return tuple(
                MethodTotal(payment_method=method, amount=totals[method.value])
                for method in PaymentMethod
                if method.value in totals
            )

        return MethodBreakdown(
            month=month,
            membership_by_method=ordered(membership),
            product_by_method=ordered(products),
        )

    # ------------------------------------------------------------------
    # Ranged membership report
    # ------------------------------------------------------------------

    def revenue_report(
        self,
        tenant_id: str,
        start_date: date | str,
        end_date: date | str,
        branch_id: str | None = None,
        payment_method: PaymentMethod | str | None = None,
        group_by: str = "day",
    ) -> RevenueReport:
        """
        Membership revenue between two civil dates (inclusive), bucketed.

        Buckets: ``YYYY-MM-DD`` (day), the ISO Monday ``YYYY-MM-DD`` (week)
        or ``YYYY-MM`` (month).  Only non-empty buckets, ascending.
        """
        if group_by not in REPORT_GROUPINGS:
            raise InvalidReportGroupingError(str(group_by), REPORT_GROUPINGS)
        start = parse_civil_date(start_date)
        end = parse_civil_date(end_date)
        validate_date_range(start, end)
        method = PaymentMethod.parse(payment_method) if payment_method else None

        rows = self._membership_rows(tenant_id, branch_id, start, end, method)

        bucket_of = _BUCKET_KEYS[group_by]
        revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
        counts: dict[str, int] = defaultdict(int)
        for amount, paid_on, _method in rows:
            key = bucket_of(paid_on)
            revenue[key] += amount
            counts[key] += 1

        buckets = tuple(
            RevenueBucket(period=key, revenue=revenue[key], count=counts[key])
            for key in sorted(revenue)
        )
        return RevenueReport(
            start_date=start,
            end_date=end,
            group_by=group_by,
            buckets=buckets,
            total_revenue=sum((b.revenue for b in buckets), ZERO),
        )
