"""
Marketplace error taxonomy and the JSON handler that renders it.
"""
from typing import Any, Dict, Optional
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCodes:
    """Standard error codes"""
    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Authentication & Authorization
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"

    # Business Logic
    DUPLICATE_BID = "DUPLICATE_BID"
    INSUFFICIENT_TOKENS = "INSUFFICIENT_TOKENS"
    INVALID_BID_TRANSITION = "INVALID_BID_TRANSITION"

    # External Service Errors
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"


class MarketplaceError(Exception):
    """Base exception for business rule failures reported to the caller."""

    code = ErrorCodes.VALIDATION_ERROR
    status_code = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ValidationFailed(MarketplaceError):
    code = ErrorCodes.VALIDATION_ERROR
    status_code = 422


class NotFound(MarketplaceError):
    code = ErrorCodes.NOT_FOUND
    status_code = 404


class PermissionDenied(MarketplaceError):
    code = ErrorCodes.FORBIDDEN
    status_code = 403


class DuplicateBid(MarketplaceError):
    code = ErrorCodes.DUPLICATE_BID
    status_code = 409

    def __init__(self, message: str = "You have already placed a bid on this project.", **kwargs):
        super().__init__(message, **kwargs)


class InsufficientTokens(MarketplaceError):
    """Raised when a debit would take the balance below zero."""

    code = ErrorCodes.INSUFFICIENT_TOKENS
    status_code = 402

    def __init__(self, required: int, balance: int, message: Optional[str] = None):
        self.required = required
        self.balance = balance
        super().__init__(
            message or f"You need at least {required} tokens to place a bid. Please purchase tokens.",
            context={"required": required, "balance": balance},
        )


class InvalidBidTransition(MarketplaceError):
    code = ErrorCodes.INVALID_BID_TRANSITION
    status_code = 409


class PaymentProviderError(MarketplaceError):
    code = ErrorCodes.PAYMENT_PROVIDER_ERROR
    status_code = 502


class CheckoutRejected(PaymentProviderError):
    """Stripe refused the checkout request itself (bad price, bad params)."""

    status_code = 400


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render a MarketplaceError as {"detail", "code", ...context}."""
    logger.info(f"⚠️ {exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, **exc.context},
    )
