from typing import Any, Dict
from sqlalchemy.orm import Session
import logging
import re

from app.clock import parse_cutoff
from app.exceptions import ServiceValidationError
from domain.models import atomic
from repositories import SettingRepository

logger = logging.getLogger("mealpass.settings")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "cutoff_time": "00:00",
    "delivery_windows": ["08:00-11:00", "12:00-15:00"],
    "skip_allowance": 3,
    "premium_price": 20,
}

_WINDOW_RE = re.compile(r"^\d{2}:\d{2}-\d{2}:\d{2}$")


class SettingsService:
    @staticmethod
    def get(db: Session, key: str) -> Any:
        """Stored value for ``key`` or its built-in default"""
        return SettingRepository(db).get_value(key, DEFAULT_SETTINGS.get(key))

    @staticmethod
    def get_all(db: Session) -> Dict[str, Any]:
        stored = SettingRepository(db).get_all_values()
        return {**DEFAULT_SETTINGS, **{k: v for k, v in stored.items() if k in DEFAULT_SETTINGS}}

    @staticmethod
    def cutoff_time(db: Session) -> str:
        return SettingsService.get(db, "cutoff_time")

    @staticmethod
    def delivery_windows(db: Session) -> list:
        return SettingsService.get(db, "delivery_windows") or []

    @staticmethod
    def premium_price(db: Session):
        return SettingsService.get(db, "premium_price")

    @staticmethod
    def update(db: Session, key: str, value: Any) -> Any:
        """
        Validate and store one setting.

        Args:
            db: Database session
            key: one of the known setting keys
            value: new value

        Returns:
            The stored value

        Raises:
            ServiceValidationError: Unknown key or invalid value
        """
        if key not in DEFAULT_SETTINGS:
            raise ServiceValidationError(f"Unknown setting: {key}")

        if key == "cutoff_time":
            parse_cutoff(value)
        elif key == "delivery_windows":
            if not isinstance(value, list) or not all(
                isinstance(w, str) and _WINDOW_RE.match(w) for w in value
            ):
                raise ServiceValidationError("delivery_windows must be a list of HH:MM-HH:MM")
        elif key == "skip_allowance":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ServiceValidationError("skip_allowance must be a non-negative integer")
        elif key == "premium_price":
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ServiceValidationError("premium_price must be a non-negative number")

        with atomic(db):
            SettingRepository(db).set_value(key, value)
        logger.info("Setting %s updated", key)
        return value
