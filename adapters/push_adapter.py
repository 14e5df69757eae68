"""Push gateway adapter.

Posts a notification to the configured gateway; returns (success, failure)
counts. Transport failures are logged and reported as one failure.
"""

from typing import Any, Dict, Optional, Tuple
import logging

import httpx

from app.config import settings

logger = logging.getLogger("mealpass.push")

_transport: Optional[httpx.BaseTransport] = None


def configure(transport: Optional[httpx.BaseTransport] = None):
    """Swap the HTTP transport (used by tests)."""
    global _transport
    _transport = transport


def send(
    user_id: str, title: str, body: str, data: Optional[Dict[str, Any]] = None
) -> Tuple[int, int]:
    url = settings.push_gateway_url
    if not url:
        logger.debug("Push gateway not configured; skipping notification for %s", user_id)
        return 0, 0

    payload = {"user_id": user_id, "title": title, "body": body, "data": data or {}}
    try:
        with httpx.Client(timeout=5.0, transport=_transport) as client:
            response = client.post(url, json=payload)
            response.raise_for_status()
            result = response.json() if response.content else {}
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Push to user %s failed: %s", user_id, exc)
        return 0, 1

    if not isinstance(result, dict):
        result = {}
    return int(result.get("success_count", 1)), int(result.get("failure_count", 0))
