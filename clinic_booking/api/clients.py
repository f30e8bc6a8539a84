# Client account routes
import logging

from fastapi import APIRouter, Depends

from clinic_booking.api.dependencies import get_client_account_service
from clinic_booking.models.schemas import ClientAccountRequest, ErrorResponse
from clinic_booking.services.clients import ClientAccountService

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["clients"])


@router.post(
    "/user/create-phorest-account",
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def create_phorest_account(
    payload: ClientAccountRequest,
    client_account_service: ClientAccountService = Depends(get_client_account_service),
):
    client = await client_account_service.create_account(payload)
    return {
        "success": True,
        "message": "Account created successfully",
        "client": client,
    }
