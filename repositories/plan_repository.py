"""
Plan Repository - Data access layer for purchasable plans
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Plan


class PlanRepository(BaseRepository[Plan]):
    """Repository for plan data access"""

    def __init__(self, db: Session):
        super().__init__(db, Plan)

    def get_by_id(self, plan_id: UUID) -> Optional[Plan]:
        """Get plan by ID"""
        return self.db.query(Plan).filter(Plan.plan_id == plan_id).first()

    def get_active(self, plan_id: UUID) -> Optional[Plan]:
        """Get plan by ID only if it is still offered"""
        return (
            self.db.query(Plan)
            .filter(Plan.plan_id == plan_id, Plan.is_active.is_(True))
            .first()
        )

    def list_active(self) -> List[Plan]:
        return (
            self.db.query(Plan)
            .filter(Plan.is_active.is_(True))
            .order_by(Plan.days_count)
            .all()
        )
