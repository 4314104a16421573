"""
Visit slot allocation.

A visit blocks every start time strictly closer than VISIT_BLOCK_HOURS to its
own start, in both directions. Cancelled visits block nothing. Blocking is
system wide: there is a single visit crew, so there is no per-resource calendar.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ...config import VISIT_BLOCK_HOURS, VISIT_SLOT_TIMES
from ...models_visit import Visit, VisitStatus
from ...shared.errors import ConflictError
from ...shared.validators import TIME_LABEL_PATTERN

logger = logging.getLogger(__name__)

# Arbitrary application-wide key for pg_advisory_xact_lock
VISIT_BOOKING_LOCK_KEY = 724_301


class SlotConflict(ConflictError):
    default_message = "Time slot not available"

    def __init__(self, conflict: Visit):
        super().__init__(
            conflictVisitId=conflict.id,
            conflictVisitDate=conflict.visit_date.isoformat(),
        )


def block_window() -> timedelta:
    return timedelta(hours=VISIT_BLOCK_HOURS)


def _active_visits(db: Session):
    return db.query(Visit).filter(Visit.status != VisitStatus.CANCELLED.value)


def lock_visit_booking(db: Session):
    """
    Serialize check-then-insert for bookings until the transaction ends.

    Only PostgreSQL supports this; on other databases two bookings racing
    for overlapping times can still both succeed.
    """
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": VISIT_BOOKING_LOCK_KEY})


def find_conflict(db: Session, candidate_start: datetime, exclude_id: Optional[int] = None) -> Optional[Visit]:
    window = block_window()
    query = _active_visits(db).filter(
        Visit.visit_date > candidate_start - window,
        Visit.visit_date < candidate_start + window,
    )
    if exclude_id is not None:
        query = query.filter(Visit.id != exclude_id)
    return query.order_by(Visit.visit_date).first()


def check_availability(db: Session, candidate_start: datetime, exclude_id: Optional[int] = None):
    """Raise SlotConflict when an active visit starts within the block window"""
    conflict = find_conflict(db, candidate_start, exclude_id)
    if conflict is not None:
        logger.warning(
            f"⚠️ Slot {candidate_start.isoformat()} rejected: visit {conflict.id} "
            f"at {conflict.visit_date.isoformat()}"
        )
        raise SlotConflict(conflict)


def list_available_slots(db: Session, day: date, slot_times: Optional[list[str]] = None) -> list[str]:
    """Labels from slot_times (HH:MM) still bookable on day"""
    slot_times = VISIT_SLOT_TIMES if slot_times is None else slot_times
    window = block_window()
    day_start = datetime(day.year, day.month, day.day)

    # Visits near midnight on neighbouring days can still block slots
    starts = [
        v.visit_date
        for v in _active_visits(db)
        .filter(
            Visit.visit_date > day_start - window,
            Visit.visit_date < day_start + timedelta(days=1) + window,
        )
        .all()
    ]

    available = []
    for label in slot_times:
        match = TIME_LABEL_PATTERN.match(label)
        if not match:
            continue
        slot = day_start.replace(hour=int(match.group(1)), minute=int(match.group(2)))
        if all(abs(start - slot) >= window for start in starts):
            available.append(label)
    return available
