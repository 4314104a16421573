"""
Dashboard service.

Aggregates orders started inside a day range into revenue and sales
figures, a zero-filled monthly series (re-bucketed into quarters and
semesters) and the most ordered catalog items. Reports can be requested
for an explicit range or for a period unit, in which case the previous
complete period and the current period-to-date are computed.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ...config import DASHBOARD_TOP_LIMIT_DEFAULT, DASHBOARD_TOP_LIMIT_MAX
from ...models_order import ItemKind
from ...shared.errors import ValidationError
from ...shared.validators import parse_date
from ..orders.totals import compute_totals
from .repository import DashboardRepository
from .schemas import DateRange, RangeReport, Series, SeriesBucket, Summary, TopItem, TopItems

logger = logging.getLogger(__name__)

# Months covered by each period unit
PERIOD_MONTHS = {"month": 1, "quarter": 3, "semester": 6, "year": 12}


def month_key(day) -> str:
    return f"{day.year}-{day.month:02d}"


def month_keys_between(start: date, end: date) -> list[str]:
    keys = []
    current = start.replace(day=1)
    while current <= end:
        keys.append(month_key(current))
        current += relativedelta(months=1)
    return keys


def quarter_key(key: str) -> str:
    year, month = key.split("-")
    return f"{year}-Q{(int(month) - 1) // 3 + 1}"


def semester_key(key: str) -> str:
    year, month = key.split("-")
    return f"{year}-S{1 if int(month) <= 6 else 2}"


def rebucket(monthly: list[SeriesBucket], key_fn: Callable[[str], str]) -> list[SeriesBucket]:
    """Group monthly buckets under a coarser key, summing revenue and sales"""
    grouped: "OrderedDict[str, SeriesBucket]" = OrderedDict()
    for bucket in monthly:
        key = key_fn(bucket.period)
        target = grouped.setdefault(key, SeriesBucket(period=key))
        target.revenue += bucket.revenue
        target.sales += bucket.sales
    return [grouped[k] for k in sorted(grouped)]


def clamp_limit(raw) -> int:
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        limit = 0
    if not limit:
        limit = DASHBOARD_TOP_LIMIT_DEFAULT
    return min(max(limit, 1), DASHBOARD_TOP_LIMIT_MAX)


def period_ranges(period: str, today: date) -> tuple[tuple[date, date], tuple[date, date]]:
    """((previous_from, previous_to), (current_from, today)) for a period unit"""
    months = PERIOD_MONTHS[period]
    first_month = ((today.month - 1) // months) * months + 1
    current_start = date(today.year, first_month, 1)
    previous_start = current_start - relativedelta(months=months)
    return (previous_start, current_start - timedelta(days=1)), (current_start, today)


class DashboardService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = DashboardRepository()

    def compute_range(self, start: date, end: date, limit: int = DASHBOARD_TOP_LIMIT_DEFAULT) -> RangeReport:
        """Report for orders started between start and end, both days inclusive"""
        range_start = datetime(start.year, start.month, start.day)
        range_end = datetime(end.year, end.month, end.day) + timedelta(days=1)

        monthly = OrderedDict((key, SeriesBucket(period=key)) for key in month_keys_between(start, end))
        summary = Summary()

        for order in self.repo.orders_started_between(self.db, range_start, range_end):
            totals = compute_totals(order)
            settled = totals.paid >= totals.total
            summary.total_revenue += totals.paid
            summary.total_sales += int(settled)

            bucket = monthly.get(month_key(order.started_at))
            if bucket is not None:
                bucket.revenue += totals.paid
                bucket.sales += int(settled)

        summary.total_users = self.repo.count_users_created_between(self.db, range_start, range_end)

        series = list(monthly.values())
        top_items = TopItems(
            products=[
                TopItem(id=row[0], name=row[1], quantity=row[2])
                for row in self.repo.top_items(self.db, ItemKind.PRODUCT, range_start, range_end, limit)
            ],
            services=[
                TopItem(id=row[0], name=row[1], quantity=row[2])
                for row in self.repo.top_items(self.db, ItemKind.SERVICE, range_start, range_end, limit)
            ],
        )

        return RangeReport(
            range=DateRange(from_=range_start, to=datetime(end.year, end.month, end.day)),
            summary=summary,
            series=Series(
                monthly=series,
                quarterly=rebucket(series, quarter_key),
                semiannual=rebucket(series, semester_key),
            ),
            top_items=top_items,
        )

    @staticmethod
    def resolve_range(raw_from, raw_to, today: date) -> tuple[date, date]:
        """Explicit range with defaults: trailing 12 months, first of month to today"""
        start = parse_date(raw_from) or (today - relativedelta(months=11)).replace(day=1)
        end = parse_date(raw_to) or today
        if start > end:
            raise ValidationError("Invalid range: from must be <= to")
        return start, end

    def report(
        self,
        raw_from=None,
        raw_to=None,
        period: Optional[str] = None,
        compare: bool = True,
        raw_limit=None,
        now: Optional[datetime] = None,
    ) -> dict:
        today = (now or datetime.utcnow()).date()
        limit = clamp_limit(raw_limit)
        explicit = any(v not in (None, "") for v in (raw_from, raw_to))

        if explicit or not period:
            start, end = self.resolve_range(raw_from, raw_to, today)
            report = self.compute_range(start, end, limit)
            return {"ok": True, "mode": "range", "period": None, **report.model_dump(mode="json", by_alias=True)}

        if period not in PERIOD_MONTHS:
            raise ValidationError("period must be month|quarter|semester|year")

        (prev_start, prev_end), (cur_start, cur_end) = period_ranges(period, today)
        logger.info(f"📊 Dashboard period report: {period} (compare={compare})")

        result = {
            "ok": True,
            "mode": "period",
            "period": period,
            "compare": compare,
            "previous": self.compute_range(prev_start, prev_end, limit).model_dump(mode="json", by_alias=True),
        }
        if compare:
            result["current"] = self.compute_range(cur_start, cur_end, limit).model_dump(mode="json", by_alias=True)
        return result
