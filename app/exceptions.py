from typing import Any, Mapping, Optional


class ServiceError(Exception):
    """Base class for domain errors raised by the service layer.

    Attributes:
        message: human-readable message
        details: optional mapping with extra context (field errors, validation info)
        code: machine-readable error code returned to clients
        http_status: suggested HTTP status code for handlers
    """

    http_status = 500
    default_code = "INTERNAL_SERVER_ERROR"
    default_message = "Service error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
        code: Optional[str] = None,
    ):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.details = details
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            payload["details"] = dict(self.details)
        return payload

    def __str__(self) -> str:
        return self.message


class ServiceValidationError(ServiceError):
    """Raised when input data is invalid or a precondition for a service call is not met.

    Rejected before any transaction opens. http_status is 400.
    """

    http_status = 400
    default_code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class InsufficientCreditsError(ServiceError):
    """Raised when a guarded ledger debit affected zero rows.

    Use code INSUFFICIENT_PREMIUM for the premium balance. http_status is 400.
    """

    http_status = 400
    default_code = "INSUFFICIENT_CREDITS"
    default_message = "Not enough credits"


class NotFoundError(ServiceError):
    """Raised when a requested resource was not found. http_status is 404."""

    http_status = 404
    default_code = "NOT_FOUND"
    default_message = "Not found"


class ConflictError(ServiceError):
    """Raised when the current state of a resource forbids the operation.

    Codes: INVALID_TRANSITION, LOCKED, ALREADY_FULFILLED. http_status is 409.
    """

    http_status = 409
    default_code = "CONFLICT"
    default_message = "Conflict"


class SubscriptionInactiveError(ServiceError):
    """Raised when a subscription is not active or its validity has ended.

    Codes: SUB_INACTIVE, SUB_EXPIRED. http_status is 422.
    """

    http_status = 422
    default_code = "SUB_INACTIVE"
    default_message = "Subscription not active"


class UnauthorizedError(ServiceError):
    """Raised when authentication or authorization fails. http_status is 401."""

    http_status = 401
    default_code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class PaymentProviderError(ServiceError):
    """Raised when the payment provider rejects or fails an outbound call.

    http_status is 502.
    """

    http_status = 502
    default_code = "PAYMENT_PROVIDER_ERROR"
    default_message = "Payment provider request failed"
