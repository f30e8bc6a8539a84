# Phorest third-party API client for staff, slots and bookings
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from clinic_booking.config import Settings
from clinic_booking.errors import (
    ProviderRejectedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    QualificationLookupUnavailable,
)
from clinic_booking.models.schemas import StaffMember, TimeSlot
from clinic_booking.services.qualification import DEFAULT_TEST_ACCOUNT_MARKERS, filter_qualified_staff
from clinic_booking.utils.helpers import embedded
from clinic_booking.utils.slots import business_hours_for, generate_time_slots, mark_booked_slots
from clinic_booking.utils.timezones import local_now

# Configure logging
logger = logging.getLogger(__name__)


class BookingProvider(ABC):
    # Operations the booking flow needs from the salon-management system

    @abstractmethod
    async def list_staff(self, branch_id: str) -> List[StaffMember]:
        # All staff records for a branch, unfiltered
        pass

    async def list_qualified_staff(self, service_id: str, branch_id: str) -> List[StaffMember]:
        # Staff already filtered by qualification; optional for providers
        raise QualificationLookupUnavailable("Qualified staff lookup is not supported")

    @abstractmethod
    async def get_open_slots(self, branch_id: str, staff_id: str, day: str, duration: int) -> List[TimeSlot]:
        # Slots for one staff member on one date
        pass

    @abstractmethod
    async def create_booking(
        self,
        client_id: str,
        service_id: str,
        staff_id: str,
        start_time_utc: str,
        branch_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        # Create an appointment; start time is already in UTC wire format
        pass

    @abstractmethod
    async def get_client_appointments(self, client_id: str, branch_id: Optional[str] = None) -> List[Dict[str, Any]]:
        # Appointment history for a client
        pass

    @abstractmethod
    async def find_clients_by_email(self, email: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def create_client(self, client: Dict[str, Any]) -> Dict[str, Any]:
        # Create a client record; returns the stored record with its clientId
        pass

    async def aclose(self) -> None:
        pass


def _response_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class PhorestClient(BookingProvider):
    """Client for the Phorest third-party API.

    One instance is created at start-up and shared by every request. It holds
    an ``httpx.AsyncClient`` with basic auth and a timeout on every call, and
    remembers the first branch of the business when no default branch is
    configured.
    """

    def __init__(
        self,
        base_url: str,
        business_id: str,
        username: str,
        password: str,
        timeout: float = 30.0,
        default_branch_id: Optional[str] = None,
        test_account_markers: Sequence[str] = DEFAULT_TEST_ACCOUNT_MARKERS,
        local_tz: tzinfo = timezone(timedelta(hours=8)),
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.business_id = business_id
        self.default_branch_id = default_branch_id
        self.test_account_markers = list(test_account_markers)
        self.local_tz = local_tz
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._first_branch_id: Optional[str] = None
        self.client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/{business_id}",
            auth=(username, password),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "PhorestClient":
        if not all([settings.phorest_business_id, settings.phorest_username, settings.phorest_password]):
            logger.warning("Phorest credentials are not fully configured; provider calls will fail")

        return cls(
            base_url=settings.phorest_base_url,
            business_id=settings.phorest_business_id,
            username=settings.phorest_username,
            password=settings.phorest_password,
            timeout=settings.provider_timeout_seconds,
            default_branch_id=settings.phorest_default_branch_id,
            test_account_markers=settings.test_account_markers,
            local_tz=settings.business_timezone,
            **kwargs,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except (httpx.ConnectTimeout, httpx.PoolTimeout) as e:
            # No request was sent
            logger.error(f"Timed out connecting to Phorest for {method} {path}: {e}")
            raise ProviderUnavailableError(
                "Unable to connect to booking system. Please try again later.",
                details={"reason": str(e) or "connect timeout"},
            )
        except httpx.TimeoutException as e:
            logger.error(f"Phorest did not answer {method} {path} in time: {e}")
            raise ProviderTimeoutError(
                "The booking system did not respond in time.",
                details={"reason": str(e) or "timeout"},
            )
        except httpx.TransportError as e:
            logger.error(f"Could not reach Phorest for {method} {path}: {e}")
            raise ProviderUnavailableError(
                "Unable to connect to booking system. Please try again later.",
                details={"reason": str(e)},
            )
        except httpx.HTTPStatusError as e:
            payload = _response_payload(e.response)
            code = None
            message = e.response.text
            if isinstance(payload, dict):
                code = payload.get("errorCode") or payload.get("detail")
                message = payload.get("message") or payload.get("detail") or message
            logger.error(f"Phorest API error {e.response.status_code} on {method} {path}: {e.response.text}")
            raise ProviderRejectedError(
                f"Phorest API Error: {e.response.status_code} - {message}",
                provider_status=e.response.status_code,
                provider_code=code,
                payload=payload,
            )

        return _response_payload(response)

    async def list_branches(self) -> List[Dict[str, Any]]:
        payload = await self._request("GET", "/branch")
        return embedded(payload, "branches")

    async def resolve_branch_id(self, branch_id: Optional[str] = None) -> str:
        # Explicit branch, then configured default, then the business's first branch
        if branch_id:
            return branch_id
        if self.default_branch_id:
            return self.default_branch_id
        if not self._first_branch_id:
            branches = await self.list_branches()
            if not branches:
                raise ProviderUnavailableError(
                    "No branch ID available. Please check your business has branches."
                )
            self._first_branch_id = branches[0]["branchId"]
            logger.info(f"Branch ID set to: {self._first_branch_id} ({branches[0].get('name')})")
        return self._first_branch_id

    async def list_staff(self, branch_id: str) -> List[StaffMember]:
        payload = await self._request("GET", f"/branch/{branch_id}/staff")
        records = embedded(payload, "staffs")
        logger.info(f"Phorest returned {len(records)} staff members for branch {branch_id}")

        staff = []
        for record in records:
            if not record.get("staffId"):
                logger.warning(f"Staff member missing ID: {record.get('firstName')} {record.get('lastName')}")
                continue
            try:
                staff.append(StaffMember.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping malformed staff record {record.get('staffId')}: {e}")
        return staff

    async def list_qualified_staff(self, service_id: str, branch_id: str) -> List[StaffMember]:
        try:
            service = await self._request("GET", f"/branch/{branch_id}/service/{service_id}")
        except ProviderRejectedError as e:
            if e.provider_status == 404:
                raise QualificationLookupUnavailable(f"Service {service_id} not found at branch {branch_id}")
            raise

        staff = await self.list_staff(branch_id)
        qualified = filter_qualified_staff(staff, service_id, branch_id, self.test_account_markers)
        service_name = service.get("name") if isinstance(service, dict) else service_id
        logger.info(f"Found {len(qualified)} qualified staff members for service: {service_name}")
        return qualified

    async def get_open_slots(self, branch_id: str, staff_id: str, day: str, duration: int) -> List[TimeSlot]:
        # Phorest has no availability endpoint: slots come from opening hours
        # minus the staff member's existing appointments
        target = date.fromisoformat(day)
        hours = business_hours_for(target)
        if hours is None:
            logger.info(f"Clinic closed on {day}")
            return []

        now = local_now(self.local_tz, self.clock())
        candidates = generate_time_slots(target, hours[0], hours[1], duration, now=now)
        if not candidates:
            return []

        payload = await self._request(
            "GET",
            f"/branch/{branch_id}/appointment",
            params={"staffId": staff_id, "from_date": day, "to_date": day, "size": 100},
        )
        appointments = [
            apt for apt in embedded(payload, "appointments")
            if apt.get("staffId") in (None, staff_id)
        ]
        logger.debug(f"Found {len(appointments)} existing appointments for staff {staff_id} on {day}")
        return mark_booked_slots(candidates, appointments)

    async def create_booking(
        self,
        client_id: str,
        service_id: str,
        staff_id: str,
        start_time_utc: str,
        branch_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            branch = await self.resolve_branch_id(branch_id)
        except ProviderTimeoutError as e:
            # Nothing has been written yet, so this is not an unknown outcome
            raise ProviderUnavailableError(e.message, details=e.details)

        schedule: Dict[str, Any] = {
            "serviceId": service_id,
            "startTime": start_time_utc,
            "staffId": staff_id,
        }
        if notes:
            schedule["notes"] = notes

        payload = {
            "clientId": client_id,
            "clientAppointmentSchedules": [
                {
                    "clientId": client_id,
                    "serviceSchedules": [schedule],
                }
            ],
        }

        result = await self._request("POST", f"/branch/{branch}/booking", json=payload)
        return result if isinstance(result, dict) else {"raw": result}

    async def get_client_appointments(self, client_id: str, branch_id: Optional[str] = None) -> List[Dict[str, Any]]:
        branch = await self.resolve_branch_id(branch_id)
        path = f"/branch/{branch}/appointment"

        try:
            payload = await self._request("GET", path, params={"clientId": client_id, "size": 50, "page": 0})
            return embedded(payload, "appointments")
        except ProviderRejectedError:
            logger.info("Client-specific appointments lookup rejected, filtering branch appointments")

        # The appointment endpoint accepts at most a 31 day window
        today = local_now(self.local_tz, self.clock()).date()
        payload = await self._request(
            "GET",
            path,
            params={
                "size": 200,
                "page": 0,
                "from_date": (today - timedelta(days=30)).isoformat(),
                "to_date": today.isoformat(),
            },
        )
        return [apt for apt in embedded(payload, "appointments") if apt.get("clientId") == client_id]

    async def find_clients_by_email(self, email: str) -> List[Dict[str, Any]]:
        payload = await self._request("GET", "/client", params={"email": email, "size": 10})
        return embedded(payload, "clients")

    async def create_client(self, client: Dict[str, Any]) -> Dict[str, Any]:
        try:
            branch = await self.resolve_branch_id()
        except ProviderTimeoutError as e:
            raise ProviderUnavailableError(e.message, details=e.details)

        result = await self._request("POST", "/client", json={"creatingBranchId": branch, **client})
        return result if isinstance(result, dict) else {"raw": result}

    async def aclose(self) -> None:
        await self.client.aclose()
