"""
App package - Application configuration and core utilities.
Contains settings, exceptions, the business clock and the background scheduler.
"""

from app.config import settings
from app.exceptions import (
    ServiceError,
    ServiceValidationError,
    InsufficientCreditsError,
    NotFoundError,
    ConflictError,
    SubscriptionInactiveError,
    UnauthorizedError,
    PaymentProviderError,
)

__all__ = [
    "settings",
    "ServiceError",
    "ServiceValidationError",
    "InsufficientCreditsError",
    "NotFoundError",
    "ConflictError",
    "SubscriptionInactiveError",
    "UnauthorizedError",
    "PaymentProviderError",
]
