# Availability aggregation across qualified staff
import asyncio
import logging
from typing import List, Sequence

from clinic_booking.errors import (
    NoQualifiedStaffError,
    ProviderError,
    ProviderUnavailableError,
    QualificationLookupUnavailable,
    RequestValidationFailed,
)
from clinic_booking.models.schemas import AvailabilityResponse, SlotEntry, StaffAvailability, StaffMember
from clinic_booking.services.phorest_client import BookingProvider
from clinic_booking.services.qualification import DEFAULT_TEST_ACCOUNT_MARKERS, filter_qualified_staff
from clinic_booking.utils.helpers import parse_iso_date

# Configure logging
logger = logging.getLogger(__name__)

STAFF_AVAILABILITY_FAILED = "Availability could not be loaded for this staff member"


def flatten_slots(staff_availability: List[StaffAvailability]) -> List[SlotEntry]:
    """Merge every staff member's slots into one list ordered by time.

    Times are ``HH:MM`` on a single date, so string order is chronological.
    The sort is stable: staff sharing a time keep their query order.
    """
    entries = [
        SlotEntry(time=slot.time, staffId=staff.staffId, staffName=staff.staffName, available=slot.available)
        for staff in staff_availability
        for slot in staff.slots
    ]
    entries.sort(key=lambda entry: entry.time)
    return entries


class AvailabilityService:
    # Finds open slots for a service at a branch on a date

    def __init__(
        self,
        provider: BookingProvider,
        slot_fetch_timeout: float = 15.0,
        test_account_markers: Sequence[str] = DEFAULT_TEST_ACCOUNT_MARKERS,
        expose_details: bool = False,
    ):
        self.provider = provider
        self.slot_fetch_timeout = slot_fetch_timeout
        self.test_account_markers = list(test_account_markers)
        self.expose_details = expose_details

    async def get_availability(
        self,
        date: str,
        service_id: str,
        branch_id: str,
        duration: int = 60,
    ) -> AvailabilityResponse:
        if not date or not service_id or not branch_id:
            raise RequestValidationFailed("date, serviceId, and branchId are required")
        if parse_iso_date(date) is None:
            raise RequestValidationFailed("date must be formatted as YYYY-MM-DD", error="Invalid date")

        logger.info(f"Fetching availability for {date} at branch {branch_id}")

        staff = await self.resolve_qualified_staff(service_id, branch_id)
        if not staff:
            logger.warning(f"No qualified staff for service {service_id} at branch {branch_id}")
            raise NoQualifiedStaffError("No staff available for this service at this location")

        logger.info(f"Found {len(staff)} qualified staff members for branch {branch_id}")

        staff_availability = await asyncio.gather(
            *(self._staff_availability(member, branch_id, date, duration) for member in staff)
        )
        slots = flatten_slots(staff_availability)

        logger.info(f"Found {sum(1 for s in slots if s.available)} available slots on {date}")

        return AvailabilityResponse(date=date, slots=slots, staff=staff_availability)

    async def resolve_qualified_staff(self, service_id: str, branch_id: str) -> List[StaffMember]:
        # Qualification-aware lookup first, branch listing plus local filter second
        try:
            try:
                return await self.provider.list_qualified_staff(service_id, branch_id)
            except QualificationLookupUnavailable as e:
                logger.info(f"Qualified staff lookup unavailable ({e}), filtering branch staff locally")

            staff = await self.provider.list_staff(branch_id)
            return filter_qualified_staff(staff, service_id, branch_id, self.test_account_markers)

        except ProviderError as e:
            logger.error(f"Staff lookup failed for branch {branch_id}: {e}")
            raise ProviderUnavailableError(
                "Unable to connect to booking system. Please try again later.",
                details={"reason": e.message, **(e.details or {})},
            )

    async def _staff_availability(
        self,
        member: StaffMember,
        branch_id: str,
        date: str,
        duration: int,
    ) -> StaffAvailability:
        # One staff member's failure is reported on their entry only
        result = StaffAvailability(staffId=member.staffId, staffName=member.display_name, title=member.title)

        try:
            result.slots = await asyncio.wait_for(
                self.provider.get_open_slots(branch_id, member.staffId, date, duration),
                timeout=self.slot_fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out getting availability for {member.display_name} ({member.staffId})")
            result.error = "Timed out fetching availability"
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            logger.warning(f"Could not get availability for {member.display_name} ({member.staffId}): {reason}")
            result.error = STAFF_AVAILABILITY_FAILED
            if self.expose_details:
                result.details = reason

        return result
