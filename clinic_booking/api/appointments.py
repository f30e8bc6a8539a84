# Availability and booking routes
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from clinic_booking.api.dependencies import (
    get_availability_service,
    get_booking_service,
    get_notifier,
    get_provider,
)
from clinic_booking.errors import RequestValidationFailed
from clinic_booking.models.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    BookingOutcome,
    BookingRequest,
    ClientAppointmentsResponse,
    ErrorResponse,
)
from clinic_booking.services.availability import AvailabilityService
from clinic_booking.services.booking import BookingService
from clinic_booking.services.notifications import BookingEmailDetails, EmailNotifier
from clinic_booking.services.phorest_client import BookingProvider
from clinic_booking.utils.helpers import format_client_appointments

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["appointments"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post("/availability", response_model=AvailabilityResponse, responses=ERROR_RESPONSES)
async def get_availability(
    payload: AvailabilityRequest,
    availability_service: AvailabilityService = Depends(get_availability_service),
):
    # Open slots of every qualified staff member, merged by time
    return await availability_service.get_availability(
        payload.date,
        payload.serviceId,
        payload.branchId,
        payload.duration,
    )


@router.post(
    "/bookings",
    response_model=BookingOutcome,
    responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def create_booking(
    payload: BookingRequest,
    background_tasks: BackgroundTasks,
    booking_service: BookingService = Depends(get_booking_service),
    notifier: EmailNotifier = Depends(get_notifier),
):
    outcome = await booking_service.submit(payload)

    # E-mails go out after the response and cannot affect the booking
    if payload.clientEmail:
        background_tasks.add_task(notifier.notify_booking, BookingEmailDetails.from_request(payload))
    outcome.booking["emailQueued"] = bool(payload.clientEmail)

    return outcome


@router.get("/bookings", response_model=ClientAppointmentsResponse, responses=ERROR_RESPONSES)
async def list_client_bookings(
    clientId: Optional[str] = Query(default=None),
    branchId: Optional[str] = Query(default=None),
    provider: BookingProvider = Depends(get_provider),
):
    if not clientId:
        raise RequestValidationFailed("clientId parameter is required")

    logger.info(f"Getting appointments for client: {clientId}")
    appointments = await provider.get_client_appointments(clientId, branch_id=branchId)

    return ClientAppointmentsResponse(appointments=format_client_appointments(appointments))
