"""Dashboard report schemas"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ...shared.schemas import CamelModel


class DateRange(CamelModel):
    from_: datetime = Field(alias="from")
    to: datetime


class Summary(CamelModel):
    total_revenue: float = 0
    total_sales: int = 0
    total_users: int = 0


class SeriesBucket(CamelModel):
    period: str  # 2026-01, 2026-Q1, 2026-S1
    revenue: float = 0
    sales: int = 0


class Series(CamelModel):
    monthly: list[SeriesBucket] = []
    quarterly: list[SeriesBucket] = []
    semiannual: list[SeriesBucket] = []


class TopItem(CamelModel):
    id: int
    name: Optional[str] = None
    quantity: int


class TopItems(CamelModel):
    products: list[TopItem] = []
    services: list[TopItem] = []


class RangeReport(CamelModel):
    range: DateRange
    summary: Summary
    series: Series
    top_items: TopItems
