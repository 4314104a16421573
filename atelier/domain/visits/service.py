"""Visit service - booking, listing and status changes"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import ensure_owner_or_permission
from ...models import User
from ...models_visit import Visit, VisitStatus
from ...shared.errors import NotFoundError, ValidationError
from ...shared.validators import parse_date, parse_visit_datetime, validate_email
from .repository import VisitRepository
from .schemas import AdminVisitCreate, VisitCreate
from .slots import check_availability, list_available_slots, lock_visit_booking

logger = logging.getLogger(__name__)


class VisitService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = VisitRepository()

    def _get_visit(self, visit_id: int) -> Visit:
        visit = self.repo.get_visit(self.db, visit_id)
        if not visit:
            raise NotFoundError("Visit not found")
        return visit

    def _build_visit(self, data: VisitCreate) -> Visit:
        if not data.visit_date:
            raise ValidationError("visitDate is required")
        start = parse_visit_datetime(data.visit_date, data.visit_time)
        if start is None:
            raise ValidationError("visitDate is invalid")
        if not data.address or not data.address.strip():
            raise ValidationError("address is required")

        services = self.repo.get_services(self.db, data.service_ids)
        if len(services) != len(set(data.service_ids)):
            raise ValidationError("Unknown service in serviceIds")

        return Visit(
            visit_date=start,
            visit_time=data.visit_time.strip() if data.visit_time else None,
            address=data.address.strip(),
            description=data.description.strip() if data.description else None,
            services=services,
        )

    def _insert(self, visit: Visit) -> Visit:
        """Check the slot and insert within one transaction"""
        try:
            lock_visit_booking(self.db)
            if visit.status != VisitStatus.CANCELLED.value:
                check_availability(self.db, visit.visit_date)
            self.db.add(visit)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(visit)
        logger.info(f"📅 Visit {visit.id} booked for {visit.visit_date.isoformat()}")
        return visit

    def book_for_me(self, data: VisitCreate, user: Optional[User]) -> Visit:
        """Book as the authenticated user, or as a guest when user is None"""
        visit = self._build_visit(data)
        visit.status = VisitStatus.PENDING.value

        if user is not None:
            visit.user_id = user.id
            visit.is_guest = False
        else:
            if not data.user_name or not data.user_name.strip():
                raise ValidationError("userName is required for guest visits")
            if not data.user_email or not data.user_email.strip():
                raise ValidationError("userEmail is required for guest visits")
            try:
                email = validate_email(data.user_email)
            except ValueError as e:
                raise ValidationError("Invalid email format") from e
            if not data.user_phone or not data.user_phone.strip():
                raise ValidationError("userPhone is required for guest visits")

            visit.is_guest = True
            visit.guest_name = data.user_name.strip()
            visit.guest_email = email
            visit.guest_phone = data.user_phone.strip()

        return self._insert(visit)

    def book_as_admin(self, data: AdminVisitCreate, admin: User) -> Visit:
        visit = self._build_visit(data)
        user_id = data.user_id or admin.id
        if not self.repo.get_user(self.db, user_id):
            raise NotFoundError("User not found")

        visit.user_id = user_id
        visit.is_guest = False
        visit.status = (data.status or VisitStatus.PENDING).value
        return self._insert(visit)

    def list_visits(self) -> list[Visit]:
        return self.repo.list_visits(self.db)

    def list_my_visits(self, user: User) -> list[Visit]:
        return self.repo.list_user_visits(self.db, user.id)

    def get_visit(self, visit_id: int, user: User) -> Visit:
        visit = self._get_visit(visit_id)
        ensure_owner_or_permission(user, visit.user_id, "visits", "view")
        return visit

    def available_slots(self, raw_date: Optional[str]) -> tuple[date, list[str]]:
        if not raw_date:
            raise ValidationError("date query parameter is required")
        day = parse_date(raw_date)
        if day is None:
            raise ValidationError("date must be YYYY-MM-DD")
        return day, list_available_slots(self.db, day)

    def update_status(self, visit_id: int, status: VisitStatus) -> Visit:
        """Change status; reactivating a cancelled visit must find its slot free again"""
        visit = self._get_visit(visit_id)
        previous = visit.status

        try:
            if previous == VisitStatus.CANCELLED.value and status != VisitStatus.CANCELLED:
                lock_visit_booking(self.db)
                check_availability(self.db, visit.visit_date, exclude_id=visit.id)
            visit.status = status.value
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(visit)
        if previous != visit.status:
            logger.info(f"Visit {visit.id} status {previous} -> {visit.status}")
        return visit

    @staticmethod
    def contact_for(visit: Visit) -> tuple[Optional[str], Optional[str]]:
        """(email, name) to send the confirmation to"""
        if visit.is_guest:
            return visit.guest_email, visit.guest_name
        if visit.user is not None:
            return visit.user.email, visit.user.name
        return None, None
