"""Core utilities and security modules."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    IntervalTooLongError,
    InvalidBookingStatus,
    NotFoundError,
    PaymentReconciliationError,
    PayoutAccountNotReady,
    RateLimitExceeded,
    UpstreamError,
    ValidationError,
    WebhookSignatureError,
)
from app.core.security import verify_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "IntervalTooLongError",
    "InvalidBookingStatus",
    "NotFoundError",
    "PaymentReconciliationError",
    "PayoutAccountNotReady",
    "RateLimitExceeded",
    "UpstreamError",
    "ValidationError",
    "WebhookSignatureError",
    "verify_token",
]
