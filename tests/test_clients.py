"""Tests for client account creation."""
import pytest
from fastapi.testclient import TestClient

from clinic_booking.errors import (
    AccountOutcomeUnknownError,
    ClientExistsError,
    ProviderTimeoutError,
    RequestValidationFailed,
)
from clinic_booking.models.schemas import ClientAccountRequest
from clinic_booking.services.clients import ClientAccountService, build_client_record, clean_phone

ACCOUNT = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "jane@skinsociete.com.au",
    "phone": "0412 345 678",
    "homeClinicId": "br-1",
    "skinType": "combination",
    "skinConcerns": ["acne", "pigmentation"],
}


@pytest.fixture
def service(provider):
    return ClientAccountService(provider)


class TestClientRecord:

    def test_clean_phone(self):
        assert clean_phone("+61 (412) 345-678") == "+61412345678"

    def test_builds_record_with_notes_and_consents(self):
        record = build_client_record(ClientAccountRequest(**ACCOUNT, marketingConsent=False))

        assert record["mobile"] == "0412345678"
        assert record["homeBranchId"] == "br-1"
        assert record["emailMarketingConsent"] is False
        assert record["smsMarketingConsent"] is True
        assert record["emailReminderConsent"] is True
        assert record["notes"] == (
            "New Skin Societe app user | Skin type: combination | Concerns: acne, pigmentation"
        )
        assert "dateOfBirth" not in record


class TestCreateAccount:

    @pytest.mark.asyncio
    async def test_creates_client(self, service, provider):
        client = await service.create_account(ClientAccountRequest(**ACCOUNT))

        assert client == {
            "clientId": "client-1",
            "fullName": "Jane Doe",
            "email": "jane@skinsociete.com.au",
            "phone": "0412345678",
            "homeClinic": "br-1",
            "isNewUser": True,
        }
        assert [c[0] for c in provider.calls] == ["find_clients_by_email", "create_client"]

    @pytest.mark.asyncio
    async def test_missing_fields_never_reach_provider(self, service, provider):
        with pytest.raises(RequestValidationFailed):
            await service.create_account(ClientAccountRequest(firstName="Jane", email="jane@skinsociete.com.au"))

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_existing_email_is_conflict(self, service, provider):
        provider.clients = [{"clientId": "c-9", "firstName": "Jane", "lastName": "Doe", "email": "jane@skinsociete.com.au"}]

        with pytest.raises(ClientExistsError) as exc_info:
            await service.create_account(ClientAccountRequest(**ACCOUNT))

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["existingClient"]["clientId"] == "c-9"
        assert not any(c[0] == "create_client" for c in provider.calls)

    @pytest.mark.asyncio
    async def test_timeout_after_submit_is_unknown_outcome(self, service, provider):
        provider.client_error = ProviderTimeoutError("read timeout")

        with pytest.raises(AccountOutcomeUnknownError) as exc_info:
            await service.create_account(ClientAccountRequest(**ACCOUNT))

        assert exc_info.value.status_code == 504


class TestCreateAccountEndpoint:

    def test_creates_account(self, client):
        response = client.post("/api/user/create-phorest-account", json=ACCOUNT)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["client"]["clientId"] == "client-1"

    def test_missing_fields(self, client):
        response = client.post("/api/user/create-phorest-account", json={"firstName": "Jane"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"

    def test_invalid_email(self, client):
        response = client.post("/api/user/create-phorest-account", json={**ACCOUNT, "email": "not-an-email"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_existing_account_hides_client_in_production(self, app_factory, provider):
        provider.clients = [{"clientId": "c-9", "firstName": "Jane", "lastName": "Doe", "email": "jane@skinsociete.com.au"}]
        client = TestClient(app_factory(environment="production"))

        response = client.post("/api/user/create-phorest-account", json=ACCOUNT)

        assert response.status_code == 409
        assert response.json()["code"] == "ACCOUNT_EXISTS"
        assert "details" not in response.json()
