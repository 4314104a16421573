"""Visit repository"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Service, User
from ...models_visit import Visit


class VisitRepository:
    @staticmethod
    def get_visit(db: Session, visit_id: int) -> Optional[Visit]:
        return (
            db.query(Visit)
            .options(selectinload(Visit.services), selectinload(Visit.user))
            .filter(Visit.id == visit_id)
            .first()
        )

    @staticmethod
    def list_visits(db: Session) -> list[Visit]:
        return (
            db.query(Visit)
            .options(selectinload(Visit.services), selectinload(Visit.user))
            .order_by(Visit.visit_date.desc())
            .all()
        )

    @staticmethod
    def list_user_visits(db: Session, user_id: int) -> list[Visit]:
        return (
            db.query(Visit)
            .options(selectinload(Visit.services), selectinload(Visit.user))
            .filter(Visit.user_id == user_id)
            .order_by(Visit.visit_date.desc())
            .all()
        )

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_services(db: Session, service_ids: list[int]) -> list[Service]:
        if not service_ids:
            return []
        return db.query(Service).filter(Service.id.in_(service_ids)).all()
