"""MongoDB adapter for the meal and add-on catalog.

Catalog documents are read-only here; catalog management lives elsewhere.
"""

from typing import Optional, Dict, List, Any, Iterable
import logging
from pymongo import MongoClient

logger = logging.getLogger("mealpass.catalog")

_client = None
_db = None


# ------------------ Connection ------------------
def connect(uri: str, db_name: str = "mealpass"):
    global _client, _db
    try:
        _client = MongoClient(uri, serverSelectionTimeoutMS=5000)
        _db = _client[db_name]
        _client.admin.command("ping")
        logger.info("Connected to MongoDB %s (database: %s)", uri, db_name)
    except Exception as exc:
        _client = None
        _db = None
        logger.warning("Could not initialize MongoDB client: %s; catalog unavailable", exc)


def close():
    """Close MongoDB connection."""
    global _client, _db
    try:
        if _client is not None:
            _client.close()
            logger.info("MongoDB client closed")
    except Exception:
        logger.exception("Error closing MongoDB client")
    finally:
        _client = None
        _db = None


def is_available() -> bool:
    return _db is not None


def _active_filter(extra: Dict[str, Any]) -> Dict[str, Any]:
    return {**extra, "is_active": True}


# ------------------ Meals ------------------
def get_meal(meal_id: str) -> Optional[Dict[str, Any]]:
    """Fetch one active meal by ID.

    Args:
        meal_id: catalog id

    Returns:
        Meal document or None if not found / inactive
    """
    if _db is not None:
        try:
            return _db.meals.find_one(_active_filter({"_id": meal_id}))
        except Exception:
            logger.exception("Error fetching meal %s", meal_id)
            return None

    logger.warning("MongoDB not available, returning None for meal %s", meal_id)
    return None


def get_meals(meal_ids: Iterable[str]) -> List[Dict[str, Any]]:
    """Fetch active meals for a list of IDs (missing ids are dropped)."""
    ids = list(dict.fromkeys(meal_ids))
    if not ids:
        return []
    if _db is not None:
        try:
            return list(_db.meals.find(_active_filter({"_id": {"$in": ids}})))
        except Exception:
            logger.exception("Error fetching %d meals", len(ids))
            return []

    logger.warning("MongoDB not available, returning no meals")
    return []


def get_default_meals(limit: int, meal_type: str = "regular") -> List[Dict[str, Any]]:
    """Default meals used when the kitchen auto-assigns an empty day.

    Args:
        limit: number of meals wanted (usually meals_per_day)
        meal_type: catalog meal type

    Returns:
        Up to ``limit`` active meal documents in catalog order
    """
    if limit <= 0:
        return []
    if _db is not None:
        try:
            cursor = (
                _db.meals.find(_active_filter({"type": meal_type}))
                .sort("sort_order", 1)
                .limit(limit)
            )
            meals = list(cursor)
            logger.debug("Loaded %d default %s meals", len(meals), meal_type)
            return meals
        except Exception:
            logger.exception("Error loading default meals")
            return []

    logger.warning("MongoDB not available, no default meals")
    return []


# ------------------ Add-ons ------------------
def get_addon(addon_id: str) -> Optional[Dict[str, Any]]:
    """Fetch one active add-on by ID (``type`` is one_time or subscription)."""
    if _db is not None:
        try:
            return _db.addons.find_one(_active_filter({"_id": addon_id}))
        except Exception:
            logger.exception("Error fetching addon %s", addon_id)
            return None

    logger.warning("MongoDB not available, returning None for addon %s", addon_id)
    return None
