# Application error types
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base error carrying a user-facing message and an HTTP status.

    ``message`` is what the caller sees. ``details`` holds technical context
    and is only returned outside production.
    """

    status_code = 500
    code = "SERVER_ERROR"
    error = "Request failed"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        if error is not None:
            self.error = error
        self.details = details


class RequestValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    error = "Missing required fields"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    error = "Not found"


class ProviderError(AppError):
    code = "PHOREST_ERROR"
    error = "Booking system error"


class ProviderUnavailableError(ProviderError):
    status_code = 503
    code = "PROVIDER_UNAVAILABLE"
    error = "Booking system unavailable"


class ProviderTimeoutError(ProviderUnavailableError):
    code = "PROVIDER_TIMEOUT"


class ProviderRejectedError(ProviderError):
    """Non-2xx answer from the provider."""

    def __init__(
        self,
        message: str,
        provider_status: int,
        provider_code: Optional[str] = None,
        payload: Any = None,
    ):
        super().__init__(
            message,
            status_code=502,
            details={
                "providerStatus": provider_status,
                "providerCode": provider_code,
                "payload": payload,
            },
        )
        self.provider_status = provider_status
        self.provider_code = provider_code
        self.payload = payload


class QualificationLookupUnavailable(Exception):
    """The qualification-aware staff lookup cannot be used for this request."""


class NoQualifiedStaffError(AppError):
    status_code = 404
    code = "NO_QUALIFIED_STAFF"
    error = "No qualified staff"


class BookingRejectedError(AppError):
    code = "BOOKING_REJECTED"
    error = "Failed to book appointment"

    def __init__(self, message: str, kind: str, status_code: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=status_code, code=kind, details=details)
        self.kind = kind


class BookingOutcomeUnknownError(AppError):
    status_code = 504
    code = "BOOKING_OUTCOME_UNKNOWN"
    error = "Booking outcome unknown"


class ClientExistsError(AppError):
    status_code = 409
    code = "ACCOUNT_EXISTS"
    error = "Account already exists"


class AccountOutcomeUnknownError(AppError):
    status_code = 504
    code = "ACCOUNT_OUTCOME_UNKNOWN"
    error = "Account outcome unknown"
