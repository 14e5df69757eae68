"""Courier dashboard routes"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging
from typing import List, Optional
from uuid import UUID

from api.responses import error_responses
from domain.models import get_db_session
from domain.schemas.subscription_schemas import DeliveryResponse
from services import CourierService

router = APIRouter(prefix="/courier", tags=["Courier"])
logger = logging.getLogger("mealpass.api.courier")


@router.get("/deliveries/today", response_model=List[DeliveryResponse])
def list_today_deliveries(db: Session = Depends(get_db_session)):
    return CourierService.list_today_deliveries(db)


@router.put(
    "/deliveries/{delivery_id}/arriving-soon",
    response_model=DeliveryResponse,
    responses=error_responses(404),
)
def mark_arriving_soon(
    delivery_id: UUID,
    actor_id: Optional[UUID] = Query(None, description="Dashboard user"),
    db: Session = Depends(get_db_session),
):
    return CourierService.mark_arriving_soon(db, delivery_id, actor_id=actor_id)


@router.put(
    "/deliveries/{delivery_id}/delivered",
    response_model=DeliveryResponse,
    responses=error_responses(400, 404, 409),
)
def mark_delivered(
    delivery_id: UUID,
    actor_id: Optional[UUID] = Query(None, description="Dashboard user"),
    db: Session = Depends(get_db_session),
):
    """Confirm delivery: fulfills the day and charges it once."""
    return CourierService.mark_delivered(db, delivery_id, actor_id=actor_id)


@router.put(
    "/deliveries/{delivery_id}/cancel",
    response_model=DeliveryResponse,
    responses=error_responses(400, 404),
)
def mark_cancelled(
    delivery_id: UUID,
    actor_id: Optional[UUID] = Query(None, description="Dashboard user"),
    db: Session = Depends(get_db_session),
):
    """Cancel a delivery; charged like a skip of the day."""
    return CourierService.mark_cancelled(db, delivery_id, actor_id=actor_id)
