"""Test the HTTP surface end to end against a fake provider."""
from fastapi.testclient import TestClient

from clinic_booking.errors import ProviderRejectedError, ProviderTimeoutError, ProviderUnavailableError


def double_booked():
    return ProviderRejectedError(
        "Phorest API Error: 409 - Staff is double booked",
        provider_status=409,
        provider_code="STAFF_DOUBLE_BOOKED",
    )


BOOKING = {
    "clientId": "c-1",
    "serviceId": "svc-1",
    "staffId": "s1",
    "startTime": "2025-03-10T09:30",
    "branchId": "br-1",
}


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["environment"] == "test"


class TestAvailabilityEndpoint:

    def test_returns_flattened_slots(self, client, provider, staff_factory, slots_factory):
        provider.staff = [staff_factory("s1", "Anna"), staff_factory("s2", "Bella")]
        provider.slots = {"s1": slots_factory("10:00"), "s2": slots_factory("09:00")}

        response = client.post("/api/availability", json={
            "date": "2025-03-10", "serviceId": "svc-1", "branchId": "br-1", "duration": 45,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert [s["time"] for s in data["slots"]] == ["09:00", "10:00"]
        assert data["staff"][0]["staffName"] == "Anna Smith"
        assert ("get_open_slots", "s1", "2025-03-10", 45) in provider.calls

    def test_missing_fields(self, client, provider):
        response = client.post("/api/availability", json={"date": "2025-03-10"})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "VALIDATION_ERROR"
        assert provider.calls == []

    def test_invalid_duration(self, client):
        response = client.post("/api/availability", json={
            "date": "2025-03-10", "serviceId": "svc-1", "branchId": "br-1", "duration": 0,
        })

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_no_qualified_staff(self, client):
        response = client.post("/api/availability", json={
            "date": "2025-03-10", "serviceId": "svc-1", "branchId": "br-1",
        })

        assert response.status_code == 404
        assert response.json()["code"] == "NO_QUALIFIED_STAFF"

    def test_provider_down(self, client, provider):
        provider.staff_error = ProviderUnavailableError("connection refused")

        response = client.post("/api/availability", json={
            "date": "2025-03-10", "serviceId": "svc-1", "branchId": "br-1",
        })

        assert response.status_code == 503

    def test_staff_failure_text_hidden_in_production(self, app_factory, provider, staff_factory, slots_factory):
        provider.staff = [staff_factory("s1", "Anna"), staff_factory("s2", "Bella")]
        provider.slots = {"s2": slots_factory("09:00")}
        provider.slot_errors = {
            "s1": ProviderRejectedError("Phorest API Error: 500 - NullPointerException at Foo.java", provider_status=500),
        }
        client = TestClient(app_factory(environment="production"))

        response = client.post("/api/availability", json={
            "date": "2025-03-10", "serviceId": "svc-1", "branchId": "br-1",
        })

        assert response.status_code == 200
        assert "NullPointerException" not in response.text
        failed = response.json()["staff"][0]
        assert failed["error"] == "Availability could not be loaded for this staff member"
        assert failed["details"] is None


class TestBookingEndpoint:

    def test_books_and_queues_email(self, client, provider, notifier):
        response = client.post("/api/bookings", json={
            **BOOKING,
            "clientEmail": "jane@skinsociete.com.au",
            "clientName": "Jane",
            "serviceName": "Hydrafacial",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["booking"]["id"] == "apt-1"
        assert data["booking"]["emailQueued"] is True
        assert len(notifier.notified) == 1
        assert notifier.notified[0].client_name == "Jane"
        assert notifier.notified[0].service_name == "Hydrafacial"

    def test_no_email_without_address(self, client, notifier):
        response = client.post("/api/bookings", json=BOOKING)

        assert response.status_code == 200
        assert notifier.notified == []

    def test_missing_fields(self, client, provider):
        response = client.post("/api/bookings", json={"clientId": "c-1"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"
        assert provider.calls == []

    def test_double_booked_is_conflict(self, client, provider, notifier):
        provider.booking_error = double_booked()

        response = client.post("/api/bookings", json={**BOOKING, "clientEmail": "jane@skinsociete.com.au"})

        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "STAFF_DOUBLE_BOOKED"
        assert data["details"]["phorestError"] == "STAFF_DOUBLE_BOOKED"
        assert notifier.notified == []

    def test_timeout_is_gateway_timeout(self, client, provider):
        provider.booking_error = ProviderTimeoutError("read timeout")

        response = client.post("/api/bookings", json=BOOKING)

        assert response.status_code == 504
        assert response.json()["code"] == "BOOKING_OUTCOME_UNKNOWN"

    def test_details_hidden_in_production(self, app_factory, provider):
        provider.booking_error = double_booked()
        client = TestClient(app_factory(environment="production"))

        response = client.post("/api/bookings", json=BOOKING)

        assert response.status_code == 409
        assert "details" not in response.json()


class TestClientBookings:

    def test_requires_client_id(self, client):
        response = client.get("/api/bookings")

        assert response.status_code == 400

    def test_lists_formatted_appointments(self, client, provider):
        provider.appointments = [{
            "appointmentId": "a1",
            "serviceId": "svc-1",
            "staffId": "s1",
            "startTime": "09:30:00",
            "activationState": "ACTIVE",
            "totalCost": 120.0,
        }]

        response = client.get("/api/bookings", params={"clientId": "c-1"})

        assert response.status_code == 200
        appointment = response.json()["appointments"][0]
        assert appointment["id"] == "a1"
        assert appointment["status"] == "ACTIVE"
        assert appointment["cost"] == 120.0
