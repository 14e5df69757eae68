"""Kitchen dashboard routes"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging
from typing import List, Optional
from uuid import UUID

from api.responses import error_responses
from domain.enums import DayStatus
from domain.models import get_db_session
from domain.schemas.subscription_schemas import (
    AssignMealsRequest,
    DayResponse,
    FulfillmentResponse,
    KitchenDayResponse,
)
from services import KitchenService

router = APIRouter(prefix="/kitchen", tags=["Kitchen"])
logger = logging.getLogger("mealpass.api.kitchen")

_TRANSITION_ERRORS = error_responses(400, 404, 409)


@router.get("/days/{day_date}", response_model=List[KitchenDayResponse])
def list_daily_orders(day_date: str, db: Session = Depends(get_db_session)):
    """All subscription days for a date with effective delivery details."""
    return KitchenService.list_daily(db, day_date)


@router.put(
    "/subscriptions/{subscription_id}/days/{day_date}/assign",
    response_model=DayResponse,
    responses=_TRANSITION_ERRORS,
)
def assign_meals(
    subscription_id: UUID,
    day_date: str,
    body: AssignMealsRequest,
    actor_id: Optional[UUID] = Query(None, description="Dashboard user"),
    db: Session = Depends(get_db_session),
):
    return KitchenService.assign_meals(
        db,
        subscription_id,
        day_date,
        body.selections,
        body.premium_selections,
        actor_id=actor_id,
    )


def _transition(to_status: DayStatus):
    def endpoint(
        subscription_id: UUID,
        day_date: str,
        actor_id: Optional[UUID] = Query(None, description="Dashboard user"),
        db: Session = Depends(get_db_session),
    ):
        return KitchenService.transition_day(
            db, subscription_id, day_date, to_status, actor_id=actor_id
        )

    endpoint.__name__ = f"mark_{to_status.value}"
    endpoint.__doc__ = f"Move the day to {to_status.value}."
    return endpoint


for _path, _status in (
    ("lock", DayStatus.LOCKED),
    ("in-preparation", DayStatus.IN_PREPARATION),
    ("out-for-delivery", DayStatus.OUT_FOR_DELIVERY),
    ("ready-for-pickup", DayStatus.READY_FOR_PICKUP),
):
    router.add_api_route(
        f"/subscriptions/{{subscription_id}}/days/{{day_date}}/{_path}",
        _transition(_status),
        methods=["POST"],
        response_model=DayResponse,
        responses=_TRANSITION_ERRORS,
    )


@router.post(
    "/subscriptions/{subscription_id}/days/{day_date}/fulfill-pickup",
    response_model=FulfillmentResponse,
    responses=_TRANSITION_ERRORS,
)
def fulfill_pickup(
    subscription_id: UUID,
    day_date: str,
    actor_id: Optional[UUID] = Query(None, description="Dashboard user"),
    db: Session = Depends(get_db_session),
):
    """Hand over a pickup day; credits are charged at most once."""
    return KitchenService.fulfill_pickup(db, subscription_id, day_date, actor_id=actor_id)
