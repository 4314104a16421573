"""
Visit Models for in-home measurement and consultation appointments
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .shared.errors import ValidationError


class VisitStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


visit_services = Table(
    "visit_services",
    Base.metadata,
    Column("visit_id", Integer, ForeignKey("visits.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id"), primary_key=True),
)


class Visit(Base):
    """A booked visit; either an authenticated user or a guest, never both"""

    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    is_guest = Column(Boolean, default=False, nullable=False)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True, index=True)
    guest_phone = Column(String(50), nullable=True)

    # Scheduling
    visit_date = Column(DateTime, nullable=False, index=True)  # Start of the visit (UTC)
    visit_time = Column(String(10), nullable=True)  # HH:MM label as requested
    address = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)

    # pending → confirmed → in_progress → completed ; cancelled frees the slot
    status = Column(String(50), default=VisitStatus.PENDING.value, nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    services = relationship("Service", secondary=visit_services)

    def validate_booker(self):
        if self.is_guest:
            if not (self.guest_name and self.guest_email and self.guest_phone):
                raise ValidationError("Guest info is required when isGuest=true")
            self.user_id = None
        else:
            if not self.user_id:
                raise ValidationError("User is required when isGuest=false")
            self.guest_name = None
            self.guest_email = None
            self.guest_phone = None


@event.listens_for(Visit, "before_insert")
@event.listens_for(Visit, "before_update")
def _validate_visit_booker(_mapper, _connection, target: Visit):
    target.validate_booker()
