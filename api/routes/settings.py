"""Operational settings routes"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from api.responses import error_responses
from domain.models import get_db_session
from domain.schemas.subscription_schemas import SettingUpdateRequest
from services import SettingsService

router = APIRouter(prefix="/settings", tags=["Settings"])
logger = logging.getLogger("mealpass.api.settings")


@router.get("", response_model=Dict[str, Any])
def get_settings(db: Session = Depends(get_db_session)):
    """Effective settings (stored values over defaults)."""
    return SettingsService.get_all(db)


@router.put("/{key}", response_model=Dict[str, Any], responses=error_responses(400))
def update_setting(key: str, body: SettingUpdateRequest, db: Session = Depends(get_db_session)):
    value = SettingsService.update(db, key, body.value)
    return {"key": key, "value": value}
