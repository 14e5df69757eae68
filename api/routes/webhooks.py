"""Payment provider webhook routes"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session
import logging

from api.responses import error_responses
from domain.models import get_db_session
from domain.schemas.payment_schemas import WebhookResult
from services import PaymentService

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger("mealpass.api.webhooks")


@router.post(
    "/moyasar",
    response_model=WebhookResult,
    responses=error_responses(400, 401),
)
def moyasar_webhook(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db_session),
):
    """
    Receive a Moyasar payment event.

    Replays are answered 200 without repeating any effect; only a
    malformed or unauthenticated payload is rejected.
    """
    return PaymentService.handle_payment_event(db, payload)
