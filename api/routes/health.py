"""Health check and utility routes"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
import logging

from adapters import catalog_adapter
from api.responses import HealthResponse
from app.config import settings
from app.scheduler import scheduler_manager
from domain.models import get_db_session

router = APIRouter(tags=["Health"])
logger = logging.getLogger("mealpass.api.health")


@router.get("/health-check", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db_session)):
    """Basic health check endpoint with store and scheduler status"""
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except Exception:
        logger.exception("Database health check failed")
        database_ok = False

    return HealthResponse(
        status="ok" if database_ok else "degraded",
        service="MealPass",
        version=settings.app_version,
        database=database_ok,
        catalog=catalog_adapter.is_available(),
        jobs=scheduler_manager.get_jobs(),
    )
