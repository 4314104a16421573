"""Visit domain schemas"""

from datetime import datetime
from typing import Optional

from ...models_visit import VisitStatus
from ...shared.schemas import CamelModel
from ..orders.schemas import UserSummary


class VisitCreate(CamelModel):
    """
    Booking request. visitDate is either a full ISO datetime, or a calendar
    day combined with visitTime (HH:MM). Guests must send name, email and phone.
    """

    visit_date: Optional[str] = None
    visit_time: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    service_ids: list[int] = []

    # Guest contact details (anonymous bookings only)
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None


class AdminVisitCreate(VisitCreate):
    user_id: Optional[int] = None  # Defaults to the admin
    status: Optional[VisitStatus] = None


class VisitStatusUpdate(CamelModel):
    status: VisitStatus


class ServiceSummary(CamelModel):
    id: int
    name: str


class VisitResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    user: Optional[UserSummary] = None
    is_guest: bool
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    visit_date: datetime
    visit_time: Optional[str] = None
    address: str
    description: Optional[str] = None
    status: str
    services: list[ServiceSummary] = []
    created_at: Optional[datetime] = None
