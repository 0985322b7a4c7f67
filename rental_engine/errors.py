"""
Error taxonomy for the rental engine.

Every domain failure is a RentalEngineError carrying a stable code and an
HTTP status. The exception handler registered in main.py renders them as

    {"error": {"code": ..., "message": ..., "details": {...}}}

Access-check failures are always reported as AccessDenied with a fixed
message so callers cannot tell which precondition failed.
"""

from typing import Any, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class RentalEngineError(Exception):
    """Base error with a consistent response shape."""

    code = "RENTAL_ENGINE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ContentUnavailable(RentalEngineError):
    code = "CONTENT_UNAVAILABLE"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Content is not available for rental in this mode"):
        super().__init__(message)


class NotPaid(RentalEngineError):
    code = "NOT_PAID"
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, message: str = "Rental purchase not found or not paid"):
        super().__init__(message)


class AlreadyRented(RentalEngineError):
    code = "ALREADY_RENTED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "You already have an active rental for this content"):
        super().__init__(message)


class TermsRequired(RentalEngineError):
    """Raised when the buyer must accept terms first. Carries what the
    client needs to prompt for acceptance."""

    code = "TERMS_REQUIRED"
    status_code = status.HTTP_428_PRECONDITION_REQUIRED

    def __init__(self, terms=None, category: Optional[str] = None):
        details = {"category": category}
        if terms is not None:
            details.update(
                terms_id=terms.id,
                title=terms.title,
                version=terms.version,
                content=terms.content,
            )
        super().__init__(
            "You must read and accept the terms and conditions before proceeding with this rental.",
            details,
        )
        self.terms = terms


class InvalidTier(RentalEngineError):
    code = "INVALID_TIER"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, mode, tier):
        super().__init__(
            f"Tier {tier!s} is not defined for {mode!s} rentals",
            {"mode": str(mode), "tier": str(tier)},
        )


class InvalidMode(RentalEngineError):
    code = "INVALID_MODE"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, mode):
        super().__init__(f"Unknown delivery mode {mode!s}", {"mode": str(mode)})


class ShippingAddressRequired(RentalEngineError):
    code = "SHIPPING_ADDRESS_REQUIRED"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self):
        super().__init__("A shipping address is required for hardcopy rentals")


class AccessDenied(RentalEngineError):
    code = "ACCESS_DENIED"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self):
        # Never say why
        super().__init__("Access denied")


class RentalNotFound(RentalEngineError):
    code = "RENTAL_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Rental not found"):
        super().__init__(message)


class AlreadyReturned(RentalEngineError):
    code = "ALREADY_RETURNED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Rental already returned or no longer active"):
        super().__init__(message)


class ReturnRequired(RentalEngineError):
    code = "RETURN_REQUIRED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Hardcopy rentals end when the copy is returned"):
        super().__init__(message)


class EventNotReportable(RentalEngineError):
    code = "EVENT_NOT_REPORTABLE"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, kind):
        super().__init__(f"Event {kind!s} cannot be reported", {"kind": str(kind)})


class CapacityExceeded(RentalEngineError):
    code = "CAPACITY_EXCEEDED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, current: int, max_concurrent: int):
        super().__init__(
            "Concurrent reading limit reached for this subscription",
            {"current": current, "max_concurrent": max_concurrent},
        )


class NoActiveTerms(RentalEngineError):
    code = "NO_ACTIVE_TERMS"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, category):
        super().__init__(
            f"No active terms configured for {category!s}",
            {"category": str(category)},
        )


class TermsNotFound(RentalEngineError):
    code = "TERMS_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, terms_id: int):
        super().__init__(f"Terms with id '{terms_id}' not found")


class TermsNotConfirmed(RentalEngineError):
    code = "TERMS_NOT_CONFIRMED"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self):
        super().__init__("You must confirm that you have read and understood the terms")


class SubscriptionNotFound(RentalEngineError):
    code = "SUBSCRIPTION_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Subscription not found"):
        super().__init__(message)


class AuditLogImmutableError(RentalEngineError):
    code = "AUDIT_LOG_IMMUTABLE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self):
        super().__init__("Audit events are append-only")


async def rental_engine_error_handler(request: Request, exc: RentalEngineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
