"""
API integration tests for contact router.
"""

from decimal import Decimal
from io import BytesIO
from unittest.mock import AsyncMock

import pytest
from fastapi import UploadFile
from httpx import AsyncClient

from contactmanager.config import Settings
from contactmanager.contacts.repository import ContactRepository
from contactmanager.contacts.router import get_contact_service, upload_contacts_csv
from contactmanager.contacts.service import ContactService
from contactmanager.main import app
from contactmanager.shared.exceptions import ValidationError
from contactmanager.shared.result import Result

CONTACT = {
    "phone": "+15551234567",
    "name": "John Doe",
    "date_of_birth": "1990-01-01",
    "married": False,
    "salary": "50000",
}


async def _create(client: AsyncClient, **overrides) -> None:
    response = await client.post("/api/contacts", json={**CONTACT, **overrides})
    assert response.status_code == 201


class TestCreateContact:
    """Tests for POST /api/contacts."""

    @pytest.mark.asyncio
    async def test_create_success(self, async_client: AsyncClient):
        """Test creating a contact."""
        response = await async_client.post("/api/contacts", json=CONTACT)

        assert response.status_code == 201
        data = response.json()
        assert data["phone"] == "+15551234567"
        assert data["name"] == "John Doe"
        assert data["date_of_birth"] == "1990-01-01"
        assert Decimal(str(data["salary"])) == Decimal("50000")

    @pytest.mark.asyncio
    async def test_create_duplicate(self, async_client: AsyncClient):
        """Test that a duplicate phone number is a conflict."""
        await _create(async_client)

        response = await async_client.post(
            "/api/contacts", json={**CONTACT, "name": "Other Person"}
        )

        assert response.status_code == 409
        assert response.json() == {
            "detail": "Contact already exists",
            "details": {"phone": "+15551234567"},
        }

    @pytest.mark.asyncio
    async def test_create_invalid_fields(self, async_client: AsyncClient):
        """Test that field rules produce a validation error payload."""
        response = await async_client.post(
            "/api/contacts",
            json={**CONTACT, "phone": "5551234567", "salary": "0"},
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "VALIDATION_ERROR"
        messages = {error["field"]: error["message"] for error in detail["errors"]}
        assert messages["body.phone"].startswith("Invalid phone number format")
        assert messages["body.salary"] == "Salary must be at least $1.00."

    @pytest.mark.asyncio
    async def test_create_rejects_sub_cent_salary(self, async_client: AsyncClient):
        """Test that a salary finer than the stored scale is refused, not rounded."""
        response = await async_client.post(
            "/api/contacts", json={**CONTACT, "salary": "0.001"}
        )

        assert response.status_code == 422
        errors = response.json()["detail"]["errors"]
        assert errors[0]["field"] == "body.salary"
        assert errors[0]["message"] == "Salary can have at most 2 decimal places."
        missing = await async_client.get("/api/contacts/+15551234567")
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_stored_salary_matches_response(self, async_client: AsyncClient):
        created = await async_client.post(
            "/api/contacts", json={**CONTACT, "salary": "1234.50"}
        )
        fetched = await async_client.get("/api/contacts/+15551234567")

        assert created.status_code == 201
        stored = Decimal(str(fetched.json()["salary"]))
        assert stored == Decimal(str(created.json()["salary"])) == Decimal("1234.50")
        assert stored > 0

    @pytest.mark.asyncio
    async def test_create_missing_fields(self, async_client: AsyncClient):
        response = await async_client.post("/api/contacts", json={"phone": "+15551234567"})

        assert response.status_code == 422


class TestGetContacts:
    """Tests for GET /api/contacts and GET /api/contacts/{phone}."""

    @pytest.mark.asyncio
    async def test_list_empty(self, async_client: AsyncClient):
        response = await async_client.get("/api/contacts")

        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0}

    @pytest.mark.asyncio
    async def test_list_search_sort_and_page(self, async_client: AsyncClient):
        await _create(async_client, phone="+15550000001", name="Alice Smith")
        await _create(async_client, phone="+15550000002", name="Bob Jones")
        await _create(async_client, phone="+15550000003", name="Carol Smith")

        response = await async_client.get(
            "/api/contacts",
            params={"search": "smith", "sort": "name", "descending": "true", "take": 1},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [c["name"] for c in data["items"]] == ["Carol Smith"]

    @pytest.mark.asyncio
    async def test_list_invalid_sort(self, async_client: AsyncClient):
        response = await async_client.get("/api/contacts", params={"sort": "nickname"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot sort by 'nickname'"

    @pytest.mark.asyncio
    async def test_get_contact(self, async_client: AsyncClient):
        await _create(async_client)

        response = await async_client.get("/api/contacts/+15551234567")

        assert response.status_code == 200
        assert response.json()["name"] == "John Doe"

    @pytest.mark.asyncio
    async def test_get_contact_not_found(self, async_client: AsyncClient):
        response = await async_client.get("/api/contacts/+15550000000")

        assert response.status_code == 404
        assert response.json()["detail"] == "Contact is not found"


class TestEditContact:
    """Tests for PUT /api/contacts/{phone}."""

    @pytest.mark.asyncio
    async def test_edit_success(self, async_client: AsyncClient):
        await _create(async_client)
        body = {key: value for key, value in CONTACT.items() if key != "phone"}

        response = await async_client.put(
            "/api/contacts/+15551234567",
            json={**body, "name": "Johnny Doe", "married": True},
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Johnny Doe"
        fetched = await async_client.get("/api/contacts/+15551234567")
        assert fetched.json()["married"] is True

    @pytest.mark.asyncio
    async def test_edit_not_found(self, async_client: AsyncClient):
        response = await async_client.put("/api/contacts/+15551234567", json=CONTACT)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_edit_invalid_name(self, async_client: AsyncClient):
        await _create(async_client)

        response = await async_client.put(
            "/api/contacts/+15551234567", json={**CONTACT, "name": "R2-D2"}
        )

        assert response.status_code == 422


class TestDeleteContact:
    """Tests for DELETE /api/contacts/{phone}."""

    @pytest.mark.asyncio
    async def test_delete_success(self, async_client: AsyncClient):
        """Test that only the addressed contact is removed."""
        await _create(async_client)
        await _create(async_client, phone="+15550000001", name="Alice Smith")
        await _create(async_client, phone="+15550000002", name="Bob Jones", married=True)

        response = await async_client.delete("/api/contacts/+15551234567")

        assert response.status_code == 204
        missing = await async_client.get("/api/contacts/+15551234567")
        assert missing.status_code == 404
        listed = (await async_client.get("/api/contacts", params={"sort": "phone"})).json()
        assert listed["total"] == 2
        assert [(c["phone"], c["name"], c["married"]) for c in listed["items"]] == [
            ("+15550000001", "Alice Smith", False),
            ("+15550000002", "Bob Jones", True),
        ]

    @pytest.mark.asyncio
    async def test_delete_not_found(self, async_client: AsyncClient):
        await _create(async_client, phone="+15550000001", name="Alice Smith")

        response = await async_client.delete("/api/contacts/+15551234567")

        assert response.status_code == 404
        remaining = await async_client.get("/api/contacts/+15550000001")
        assert remaining.status_code == 200
        assert remaining.json()["name"] == "Alice Smith"


class TestUploadContactsCSV:
    """Tests for POST /api/contacts/upload."""

    @pytest.mark.asyncio
    async def test_upload_csv_success(self, async_client: AsyncClient):
        """Test successful CSV upload."""
        content = (
            b"Name,DateOfBirth,Married,Phone,Salary\r\n"
            b"John Doe,1990-01-01,true,+15551234567,50000\r\n"
            b"Jane Roe,1985-05-05,false,+15557654321,60000\r\n"
        )

        response = await async_client.post(
            "/api/contacts/upload",
            files={"file": ("contacts.csv", content, "text/csv")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["created_count"] == 2
        assert data["skipped_count"] == 0
        listed = await async_client.get("/api/contacts")
        assert listed.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_upload_rejects_other_extensions(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/contacts/upload",
            files={"file": ("contacts.txt", b"John Doe,1990-01-01,true,+15551234567,1", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Please upload a valid CSV file."

    @pytest.mark.asyncio
    async def test_upload_empty_file(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/contacts/upload",
            files={"file": ("contacts.csv", b"", "text/csv")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "No file selected"

    @pytest.mark.asyncio
    async def test_upload_too_large(
        self,
        async_client: AsyncClient,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "10")

        response = await async_client.post(
            "/api/contacts/upload",
            files={"file": ("contacts.csv", b"John Doe,1990-01-01,true,+15551234567,1", "text/csv")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "File is too large"

    @pytest.mark.asyncio
    async def test_upload_at_limit_accepted(
        self,
        async_client: AsyncClient,
        monkeypatch: pytest.MonkeyPatch,
    ):
        content = b"John Doe,1990-01-01,true,+15551234567,1"
        monkeypatch.setenv("MAX_UPLOAD_BYTES", str(len(content)))

        response = await async_client.post(
            "/api/contacts/upload",
            files={"file": ("contacts.csv", content, "text/csv")},
        )

        assert response.status_code == 200
        assert response.json()["created_count"] == 1

    @pytest.mark.asyncio
    async def test_oversized_upload_read_is_bounded(self, monkeypatch: pytest.MonkeyPatch):
        """Test that an upload of unknown size is read no further than the limit."""
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "10")
        upload = UploadFile(file=BytesIO(b"x" * 1000), filename="contacts.csv")
        service = AsyncMock(spec=ContactService)

        with pytest.raises(ValidationError) as exc_info:
            await upload_contacts_csv(file=upload, service=service)

        assert exc_info.value.message == "File is too large"
        assert upload.file.tell() == 11
        service.upload_csv.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oversized_upload_rejected_by_declared_size(
        self,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "10")
        upload = UploadFile(file=BytesIO(b"x" * 1000), filename="contacts.csv", size=1000)

        with pytest.raises(ValidationError):
            await upload_contacts_csv(file=upload, service=AsyncMock(spec=ContactService))

        assert upload.file.tell() == 0

    @pytest.mark.asyncio
    async def test_upload_invalid_row(self, async_client: AsyncClient):
        content = (
            b"John Doe,1990-01-01,true,+15551234567,50000\n"
            b"Jane Roe,1985-05-05,false,+15557654321,-1\n"
        )

        response = await async_client.post(
            "/api/contacts/upload",
            files={"file": ("contacts.csv", content, "text/csv")},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["details"]["line_number"] == 2
        assert body["details"]["created_count"] == 1

    @pytest.mark.asyncio
    async def test_upload_duplicate(self, async_client: AsyncClient):
        await _create(async_client)

        response = await async_client.post(
            "/api/contacts/upload",
            files={"file": ("contacts.csv", b"John Doe,1990-01-01,true,+15551234567,1", "text/csv")},
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Contact already exists"


class TestApplication:
    """Tests for application-level behaviour."""

    @pytest.mark.asyncio
    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_store_failure_is_service_unavailable(
        self,
        async_client: AsyncClient,
        test_settings: Settings,
    ):
        repository = AsyncMock(spec=ContactRepository)
        repository.get_single.return_value = Result.fail(
            "An error occurred while retrieving the data."
        )
        service = ContactService(session=AsyncMock(), repository=repository, settings=test_settings)
        app.dependency_overrides[get_contact_service] = lambda: service

        response = await async_client.get("/api/contacts/+15551234567")

        assert response.status_code == 503
        assert response.json()["detail"] == "The data store is unavailable"
