# Client account creation at the booking provider
import logging
import re
from typing import Any, Dict

from clinic_booking.errors import (
    AccountOutcomeUnknownError,
    ClientExistsError,
    ProviderTimeoutError,
    RequestValidationFailed,
)
from clinic_booking.models.schemas import ClientAccountRequest
from clinic_booking.services.phorest_client import BookingProvider

# Configure logging
logger = logging.getLogger(__name__)

ACCOUNT_NOTE = "New Skin Societe app user"


def clean_phone(phone: str) -> str:
    # Digits and a leading plus only
    return re.sub(r"[^\d+]", "", phone)


def build_client_record(request: ClientAccountRequest) -> Dict[str, Any]:
    """Map an account request to a Phorest client record.

    Marketing consents default to granted, as on the sign-up form; reminder
    consents are always granted. Skin details are kept in the client notes.
    """
    notes = [
        ACCOUNT_NOTE,
        f"Skin type: {request.skinType}" if request.skinType else "",
        f"Concerns: {', '.join(request.skinConcerns)}" if request.skinConcerns else "",
        f"Allergies: {request.allergies}" if request.allergies else "",
    ]

    record = {
        "firstName": request.firstName,
        "lastName": request.lastName,
        "email": request.email,
        "mobile": clean_phone(request.phone) if request.phone else None,
        "dateOfBirth": request.dateOfBirth,
        "homeBranchId": request.homeClinicId,
        "emailMarketingConsent": True if request.marketingConsent is None else request.marketingConsent,
        "smsMarketingConsent": True if request.smsConsent is None else request.smsConsent,
        "emailReminderConsent": True,
        "smsReminderConsent": True,
        "notes": " | ".join(note for note in notes if note),
    }
    return {key: value for key, value in record.items() if value is not None}


class ClientAccountService:
    # Creates provider client records for new app users

    def __init__(self, provider: BookingProvider):
        self.provider = provider

    async def create_account(self, request: ClientAccountRequest) -> Dict[str, Any]:
        if not request.firstName or not request.lastName or not request.email:
            raise RequestValidationFailed("First name, last name, and email are required")

        logger.info(f"Checking if client already exists: {request.email}")
        existing = await self.provider.find_clients_by_email(request.email)
        if existing:
            match = existing[0]
            raise ClientExistsError(
                "A Phorest account already exists with this email address.",
                details={"existingClient": {
                    "clientId": match.get("clientId"),
                    "name": f"{match.get('firstName') or ''} {match.get('lastName') or ''}".strip(),
                    "email": match.get("email"),
                }},
            )

        logger.info(f"Creating Phorest account for: {request.firstName} {request.lastName}")
        try:
            created = await self.provider.create_client(build_client_record(request))
        except ProviderTimeoutError as e:
            logger.error(f"Client creation for {request.email} timed out after submission: {e}")
            raise AccountOutcomeUnknownError(
                "The booking system did not confirm in time, so the account may or may not have "
                "been created. Please try signing in before creating it again.",
                details={"reason": e.message, **(e.details or {})},
            )

        logger.info(f"Created Phorest account: {created.get('clientId')}")

        first_name = created.get("firstName") or request.firstName
        last_name = created.get("lastName") or request.lastName
        return {
            "clientId": created.get("clientId"),
            "fullName": f"{first_name} {last_name}",
            "email": created.get("email") or request.email,
            "phone": created.get("mobile"),
            "homeClinic": request.homeClinicId or "Not set",
            "isNewUser": True,
        }
