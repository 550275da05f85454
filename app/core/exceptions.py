"""Custom application exceptions.

Every exception carries a stable machine-readable ``code`` so callers and
tests can branch on it without matching on the human-readable detail.
"""

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
        code: str | None = None,
    ) -> None:
        if code is not None:
            self.code = code
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Malformed input, rejected before any store access."""

    code = "VALIDATION_ERROR"

    def __init__(self, detail: str = "Validation failed", code: str | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail, code=code
        )


class IntervalTooLongError(ValidationError):
    """Requested interval spans more local days than the segmenter allows."""

    def __init__(self, max_segments: int) -> None:
        super().__init__(
            f"Requested interval spans more than {max_segments} calendar days",
            code="INTERVAL_TOO_LONG",
        )


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    code = "AUTHENTICATION_FAILED"

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Actor is neither the booking's renter nor the resource's owner."""

    code = "FORBIDDEN"

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(AppException):
    """Expected business-rule denial (availability reason codes)."""

    def __init__(self, code: str, detail: str | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail or f"Booking denied: {code}",
            code=code,
        )


class InvalidBookingStatus(AppException):
    """Invalid booking status for operation."""

    code = "INVALID_BOOKING_STATUS"

    def __init__(self, detail: str = "This operation is not allowed for the current booking status") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class PayoutAccountNotReady(AppException):
    """Owner has no payout account or onboarding is incomplete."""

    code = "PAYOUT_ACCOUNT_NOT_READY"

    def __init__(self, detail: str = "The owner cannot receive payouts yet") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class UpstreamError(AppException):
    """Data store or payment processor failure."""

    code = "UPSTREAM_ERROR"

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        self.service = service
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class WebhookSignatureError(AppException):
    """Webhook payload could not be authenticated."""

    code = "INVALID_SIGNATURE"

    def __init__(self, detail: str = "Invalid webhook signature") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class RateLimitExceeded(AppException):
    """Rate limit exceeded exception."""

    code = "RATE_LIMITED"

    def __init__(self, detail: str = "Too many requests. Please try again later.") -> None:
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={"Retry-After": "60"},
        )


class PaymentReconciliationError(Exception):
    """Money moved (or failed to move) out of step with booking state.

    Never surfaced to API callers: it is logged and left for the refund
    retry sweep or manual follow-up.
    """

    def __init__(self, booking_id: str, detail: str) -> None:
        self.booking_id = booking_id
        self.detail = detail
        super().__init__(f"Booking {booking_id}: {detail}")
