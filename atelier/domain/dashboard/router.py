"""Dashboard router - sales report for a date range or period"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_permission
from ...database import get_db
from ...models import User
from .service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def get_dashboard_service(db: Session = Depends(get_db)) -> DashboardService:
    """Dependency injection for DashboardService"""
    return DashboardService(db)


@router.get("")
async def get_dashboard(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    period: Optional[str] = Query(None, description="month | quarter | semester | year"),
    compare: bool = Query(True),
    limit: Optional[str] = Query(None),
    current_user: User = Depends(require_permission("dashboard", "view")),
    service: DashboardService = Depends(get_dashboard_service),
):
    """
    Revenue, sales, new users and top items.

    from/to (or startDate/endDate) select an explicit range and take priority
    over period; without either, the trailing 12 months are reported.
    """
    return service.report(
        raw_from=from_ if from_ is not None else start_date,
        raw_to=to if to is not None else end_date,
        period=period,
        compare=compare,
        raw_limit=limit,
    )
