"""Shared test fixtures."""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from clinic_booking.config import Settings
from clinic_booking.errors import QualificationLookupUnavailable
from clinic_booking.models.schemas import StaffMember, TimeSlot
from clinic_booking.services.notifications import EmailNotifier
from clinic_booking.services.phorest_client import BookingProvider
from clinic_booking.services.store import MemoryStore

PERTH = timezone(timedelta(hours=8))

# Monday 2025-03-10, 06:00 in Perth
FIXED_NOW = datetime(2025, 3, 9, 22, 0, tzinfo=timezone.utc)


class FakeProvider(BookingProvider):
    """In-memory provider; tests set the attributes they need."""

    def __init__(self):
        self.staff = []
        self.staff_error = None
        self.qualified = None  # None means the qualified lookup is unsupported
        self.slots = {}
        self.slot_errors = {}
        self.slot_delays = {}
        self.booking_result = {"appointmentId": "apt-1", "status": "ACTIVE"}
        self.booking_error = None
        self.appointments = []
        self.clients = []
        self.client_error = None
        self.calls = []
        self.closed = False

    async def list_staff(self, branch_id):
        self.calls.append(("list_staff", branch_id))
        if self.staff_error:
            raise self.staff_error
        return list(self.staff)

    async def list_qualified_staff(self, service_id, branch_id):
        self.calls.append(("list_qualified_staff", service_id, branch_id))
        if self.qualified is None:
            raise QualificationLookupUnavailable("not supported")
        return list(self.qualified)

    async def get_open_slots(self, branch_id, staff_id, day, duration):
        self.calls.append(("get_open_slots", staff_id, day, duration))
        if staff_id in self.slot_delays:
            await asyncio.sleep(self.slot_delays[staff_id])
        if staff_id in self.slot_errors:
            raise self.slot_errors[staff_id]
        return list(self.slots.get(staff_id, []))

    async def create_booking(self, client_id, service_id, staff_id, start_time_utc, branch_id=None, notes=None):
        self.calls.append(("create_booking", {
            "clientId": client_id,
            "serviceId": service_id,
            "staffId": staff_id,
            "startTime": start_time_utc,
            "branchId": branch_id,
            "notes": notes,
        }))
        if self.booking_error:
            raise self.booking_error
        return dict(self.booking_result)

    async def get_client_appointments(self, client_id, branch_id=None):
        self.calls.append(("get_client_appointments", client_id, branch_id))
        return list(self.appointments)

    async def find_clients_by_email(self, email):
        self.calls.append(("find_clients_by_email", email))
        return [c for c in self.clients if c.get("email") == email]

    async def create_client(self, client):
        self.calls.append(("create_client", client))
        if self.client_error:
            raise self.client_error
        created = {"clientId": f"client-{len(self.clients) + 1}", **client}
        self.clients.append(created)
        return created

    async def aclose(self):
        self.closed = True


class RecordingNotifier(EmailNotifier):
    def __init__(self):
        super().__init__(host="localhost", port=25)
        self.notified = []

    def notify_booking(self, details):
        self.notified.append(details)


def make_staff(staff_id, first_name, last_name="Smith", branch_id="br-1", **extra):
    return StaffMember(staffId=staff_id, firstName=first_name, lastName=last_name, branchId=branch_id, **extra)


def make_slots(*times, available=True):
    return [TimeSlot(time=t, available=available) for t in times]


@pytest.fixture
def staff_factory():
    return make_staff


@pytest.fixture
def slots_factory():
    return make_slots


@pytest.fixture
def perth():
    return PERTH


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def store():
    return MemoryStore(namespace="test")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app_settings():
    return Settings(_env_file=None, environment="test", seed_demo_leaderboard=False)


@pytest.fixture
def app_factory(provider, store, notifier, clock, app_settings):
    """Build an app wired to the fakes; settings can be overridden per test."""
    from clinic_booking.main import create_app

    def _create(**overrides):
        configured = app_settings.model_copy(update=overrides) if overrides else app_settings
        return create_app(configured, provider=provider, store=store, notifier=notifier, clock=clock)

    return _create


@pytest.fixture
def client(app_factory):
    """Create FastAPI test client."""
    return TestClient(app_factory())
