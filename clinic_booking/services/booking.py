# Booking submission and provider error classification
import json
import logging
from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum
from typing import Any, Dict, Tuple

from clinic_booking.errors import (
    BookingOutcomeUnknownError,
    BookingRejectedError,
    ProviderRejectedError,
    ProviderTimeoutError,
    RequestValidationFailed,
)
from clinic_booking.models.schemas import BookingOutcome, BookingRequest
from clinic_booking.services.phorest_client import BookingProvider
from clinic_booking.utils.timezones import to_provider_time

# Configure logging
logger = logging.getLogger(__name__)


class BookingErrorKind(str, Enum):
    STAFF_NOT_WORKING = "STAFF_NOT_WORKING"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    DOUBLE_BOOKED = "STAFF_DOUBLE_BOOKED"
    CLIENT_NOT_FOUND = "CLIENT_NOT_FOUND"
    SERVICE_NOT_FOUND = "SERVICE_NOT_FOUND"
    DEPOSIT_REQUIRED = "DEPOSIT_REQUIRED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Classification:
    kind: BookingErrorKind
    status_code: int
    message: str


CLASSIFICATIONS: Dict[BookingErrorKind, Classification] = {
    BookingErrorKind.STAFF_NOT_WORKING: Classification(
        BookingErrorKind.STAFF_NOT_WORKING,
        400,
        "The requested staff member is not rostered for the selected time. "
        "Please choose a different time when they are working.",
    ),
    BookingErrorKind.SLOT_UNAVAILABLE: Classification(
        BookingErrorKind.SLOT_UNAVAILABLE,
        400,
        "This time slot is no longer available. Please select a different time.",
    ),
    BookingErrorKind.DOUBLE_BOOKED: Classification(
        BookingErrorKind.DOUBLE_BOOKED,
        409,
        "The requested time slot is already booked. Please select a different time.",
    ),
    BookingErrorKind.CLIENT_NOT_FOUND: Classification(
        BookingErrorKind.CLIENT_NOT_FOUND,
        404,
        "Client not found. Please check the client details.",
    ),
    BookingErrorKind.SERVICE_NOT_FOUND: Classification(
        BookingErrorKind.SERVICE_NOT_FOUND,
        404,
        "Service not found. Please check the service selection.",
    ),
    BookingErrorKind.DEPOSIT_REQUIRED: Classification(
        BookingErrorKind.DEPOSIT_REQUIRED,
        400,
        "This service requires a deposit. Please contact the clinic to complete your booking.",
    ),
    BookingErrorKind.UNKNOWN: Classification(
        BookingErrorKind.UNKNOWN,
        500,
        "We could not complete your booking. Please try again later or contact the clinic.",
    ),
}

# Substring fallback, checked in order
SUBSTRING_RULES: Tuple[Tuple[str, BookingErrorKind], ...] = (
    ("STAFF_NOT_WORKING", BookingErrorKind.STAFF_NOT_WORKING),
    ("SLOT_UNAVAILABLE", BookingErrorKind.SLOT_UNAVAILABLE),
    ("STAFF_DOUBLE_BOOKED", BookingErrorKind.DOUBLE_BOOKED),
    ("CLIENT_NOT_FOUND", BookingErrorKind.CLIENT_NOT_FOUND),
    ("SERVICE_NOT_FOUND", BookingErrorKind.SERVICE_NOT_FOUND),
    ("DEPOSIT", BookingErrorKind.DEPOSIT_REQUIRED),
)


def classify_provider_rejection(error: ProviderRejectedError) -> Classification:
    """Map a provider rejection to a user-facing classification.

    The structured error code is used when it names a known condition.
    Matching on the message and payload text is the fallback, since it
    depends on the provider's wording.
    """
    code = (error.provider_code or "").upper()
    for value in BookingErrorKind:
        if code == value.value:
            return CLASSIFICATIONS[value]

    try:
        payload_text = json.dumps(error.payload) if error.payload is not None else ""
    except (TypeError, ValueError):
        payload_text = str(error.payload)
    haystack = f"{error.provider_code or ''} {error.message} {payload_text}".upper()

    for marker, kind in SUBSTRING_RULES:
        if marker in haystack:
            logger.info(f"Classified provider rejection as {kind.value} by message text")
            return CLASSIFICATIONS[kind]

    logger.error(
        f"Unclassified provider rejection (status {error.provider_status}, code {error.provider_code}): "
        f"{payload_text or error.message}"
    )
    return CLASSIFICATIONS[BookingErrorKind.UNKNOWN]


class BookingService:
    """Submits bookings to the provider.

    A request moves received -> validated -> submitted, then ends confirmed,
    rejected (classified), provider-error or outcome-unknown. Nothing is
    retried: a conflict is resolved by the caller picking another slot, and a
    timed-out write may already exist on the provider side.
    """

    def __init__(self, provider: BookingProvider, local_tz: tzinfo):
        self.provider = provider
        self.local_tz = local_tz

    @staticmethod
    def validate(request: BookingRequest) -> None:
        if not all([request.clientId, request.serviceId, request.staffId, request.startTime]):
            raise RequestValidationFailed("clientId, serviceId, staffId, and startTime are required")

    async def submit(self, request: BookingRequest) -> BookingOutcome:
        self.validate(request)

        try:
            start_time_utc = to_provider_time(request.startTime, self.local_tz)
        except ValueError:
            raise RequestValidationFailed(
                "startTime must be an ISO-8601 date and time, e.g. 2025-03-10T09:30",
                error="Invalid start time",
            )

        logger.info(f"Creating booking for client {request.clientId}")
        logger.info(
            f"Service: {request.serviceId}, Staff: {request.staffId}, "
            f"Time: {request.startTime} (local) -> {start_time_utc} (UTC)"
        )

        try:
            booking = await self.provider.create_booking(
                request.clientId,
                request.serviceId,
                request.staffId,
                start_time_utc,
                branch_id=request.branchId,
                notes=request.notes,
            )
        except ProviderTimeoutError as e:
            logger.error(f"Booking request for client {request.clientId} timed out after submission: {e}")
            raise BookingOutcomeUnknownError(
                "The booking system did not confirm in time, so the appointment may or may not "
                "have been created. Please check your appointments before trying again.",
                details={"reason": e.message, **(e.details or {})},
            )
        except ProviderRejectedError as e:
            classification = classify_provider_rejection(e)
            raise BookingRejectedError(
                classification.message,
                kind=classification.kind.value,
                status_code=classification.status_code,
                details={"phorestError": e.provider_code, "providerMessage": e.message, **(e.details or {})},
            )

        logger.info(f"Booking created successfully: {booking}")

        return BookingOutcome(booking=self._booking_summary(request, start_time_utc, booking))

    @staticmethod
    def _booking_summary(request: BookingRequest, start_time_utc: str, booking: Dict[str, Any]) -> Dict[str, Any]:
        # Provider id and status are passed through untouched
        summary: Dict[str, Any] = {
            "clientId": request.clientId,
            "serviceId": request.serviceId,
            "staffId": request.staffId,
            "startTime": request.startTime,
            "startTimeUtc": start_time_utc,
        }
        summary.update(booking)
        summary["id"] = booking.get("id") or booking.get("appointmentId") or booking.get("bookingId")
        summary["status"] = booking.get("status")
        return summary
