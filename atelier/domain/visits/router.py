"""Visit router - booking (customers, guests and admins), listings and slot lookup"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user, require_permission
from ...database import get_db
from ...email_service import send_visit_confirmation
from ...models import User
from ...models_visit import Visit
from ...services.template_service import TemplateRenderer, get_template_renderer
from .schemas import AdminVisitCreate, VisitCreate, VisitResponse, VisitStatusUpdate
from .service import VisitService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/visits", tags=["Visits"])


def get_visit_service(db: Session = Depends(get_db)) -> VisitService:
    """Dependency injection for VisitService"""
    return VisitService(db)


async def _send_confirmation(renderer: TemplateRenderer, visit: Visit):
    email, name = VisitService.contact_for(visit)
    if not email:
        return
    try:
        await send_visit_confirmation(
            renderer,
            to=email,
            user_name=name,
            visit_date=visit.visit_date,
            visit_time=visit.visit_time,
            address=visit.address,
            services=[s.name for s in visit.services],
            description=visit.description,
            status=visit.status,
        )
        logger.info(f"✅ Visit confirmation sent to {email}")
    except Exception as email_err:
        logger.error(f"❌ Failed to send visit confirmation for visit {visit.id}: {email_err}")


@router.post("/mine", status_code=201)
async def book_my_visit(
    data: VisitCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    service: VisitService = Depends(get_visit_service),
    renderer: TemplateRenderer = Depends(get_template_renderer),
):
    """Book a visit as the logged-in customer, or as a guest"""
    visit = service.book_for_me(data, current_user)
    await _send_confirmation(renderer, visit)
    return {
        "ok": True,
        "visit": VisitResponse.model_validate(visit),
        "message": "Visit created successfully"
        if current_user
        else "Visit created successfully. We will contact you soon.",
    }


@router.post("", status_code=201)
async def book_visit(
    data: AdminVisitCreate,
    current_user: User = Depends(require_permission("visits", "create")),
    service: VisitService = Depends(get_visit_service),
    renderer: TemplateRenderer = Depends(get_template_renderer),
):
    visit = service.book_as_admin(data, current_user)
    await _send_confirmation(renderer, visit)
    return {"ok": True, "visit": VisitResponse.model_validate(visit)}


@router.get("")
async def list_visits(
    current_user: User = Depends(require_permission("visits", "view")),
    service: VisitService = Depends(get_visit_service),
):
    return {"ok": True, "visits": [VisitResponse.model_validate(v) for v in service.list_visits()]}


@router.get("/mine")
async def list_my_visits(
    current_user: User = Depends(get_current_user),
    service: VisitService = Depends(get_visit_service),
):
    visits = service.list_my_visits(current_user)
    return {"ok": True, "visits": [VisitResponse.model_validate(v) for v in visits]}


@router.get("/available-slots")
async def get_available_slots(
    date: Optional[str] = Query(None, description="Day to check, YYYY-MM-DD"),
    service: VisitService = Depends(get_visit_service),
):
    """Hourly start times still free on a given day"""
    day, slots = service.available_slots(date)
    return {"ok": True, "date": day.isoformat(), "availableSlots": slots}


@router.get("/{visit_id}", response_model=VisitResponse)
async def get_visit(
    visit_id: int,
    current_user: User = Depends(get_current_user),
    service: VisitService = Depends(get_visit_service),
):
    return VisitResponse.model_validate(service.get_visit(visit_id, current_user))


@router.patch("/{visit_id}/status", response_model=VisitResponse)
async def update_visit_status(
    visit_id: int,
    data: VisitStatusUpdate,
    current_user: User = Depends(require_permission("visits", "update")),
    service: VisitService = Depends(get_visit_service),
):
    return VisitResponse.model_validate(service.update_status(visit_id, data.status))
