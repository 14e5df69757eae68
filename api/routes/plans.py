"""Plan catalogue routes"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from domain.models import get_db_session
from domain.schemas.subscription_schemas import PlanResponse
from repositories import PlanRepository

router = APIRouter(prefix="/plans", tags=["Plans"])
logger = logging.getLogger("mealpass.api.plans")


@router.get("", response_model=List[PlanResponse])
def list_plans(db: Session = Depends(get_db_session)):
    """Plans currently offered for checkout, shortest first."""
    return PlanRepository(db).list_active()
