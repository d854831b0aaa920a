"""
Contact service for business logic.

Enforces the rules the repository does not: a phone number is used by at most
one contact, and edits and deletes require an existing contact. A repository
failure is logged and raised as ``StoreError``; "nothing found" is reported as
an empty list, ``None`` or ``False``.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import ColumnElement
from sqlalchemy.ext.asyncio import AsyncSession

from contactmanager.config import Settings, get_settings
from contactmanager.contacts.csv_importer import ContactCSVImporter
from contactmanager.contacts.models import Contact
from contactmanager.contacts.repository import SORTABLE_COLUMNS, ContactRepository
from contactmanager.contacts.schemas import ContactCandidate, CSVUploadResponse
from contactmanager.shared.exceptions import ConflictError, StoreError, ValidationError
from contactmanager.shared.logging import get_logger
from contactmanager.shared.result import Result

logger = get_logger(__name__)


def _field_errors(exc: PydanticValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"].removeprefix("Value error, "),
        }
        for error in exc.errors()
    ]


class ContactService:
    """Service for contact management operations."""

    def __init__(
        self,
        session: AsyncSession,
        repository: ContactRepository | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize contact service.

        Args:
            session: Async database session.
            repository: Optional contact repository (for DI).
            settings: Optional settings override.
        """
        self._session = session
        self._settings = settings or get_settings()
        self._repository = repository or ContactRepository(
            session,
            batch_size=self._settings.repository_batch_size,
        )

    async def list_contacts(
        self,
        search: str | None = None,
        sort_by: str | None = None,
        descending: bool = False,
        skip: int | None = None,
        take: int | None = None,
    ) -> list[Contact]:
        """List contacts, all of them unless a search or page is given.

        Args:
            search: Case-insensitive substring of name or phone.
            sort_by: One of ``SORTABLE_COLUMNS``.
            descending: Reverse the sort order.
            skip: Number of contacts to skip.
            take: Maximum number of contacts to return.

        Raises:
            ValidationError: If ``sort_by`` is not a sortable column.
            StoreError: If the store cannot be read.
        """
        order_by = None
        if sort_by:
            column = SORTABLE_COLUMNS.get(sort_by)
            if column is None:
                raise ValidationError(
                    f"Cannot sort by '{sort_by}'",
                    details={"allowed": sorted(SORTABLE_COLUMNS)},
                )
            # phone breaks ties so paging is stable
            order_by = [column.desc() if descending else column.asc(), Contact.phone.asc()]

        result = await self._repository.get_list(
            where=self._search_filter(search),
            order_by=order_by,
            skip=skip,
            take=take,
            read_only=True,
        )
        self._raise_on_failure(result, "list contacts")
        return list(result.data or [])

    async def count_contacts(self, search: str | None = None) -> int:
        result = await self._repository.count(self._search_filter(search))
        self._raise_on_failure(result, "count contacts")
        return result.data or 0

    async def find(self, where: ColumnElement[bool]) -> Contact | None:
        result = await self._repository.get_single(where, read_only=True)
        self._raise_on_failure(result, "get contact")
        return result.data

    async def exists(self, where: ColumnElement[bool]) -> bool:
        result = await self._repository.exists(where)
        self._raise_on_failure(result, "check contact exists")
        return bool(result.data)

    async def create(self, contact: Contact) -> bool:
        """Insert ``contact`` unless its phone number is already taken.

        Returns:
            True if created, False if the phone number already exists.
        """
        existing = await self._repository.get_single(
            ContactRepository.by_phone(contact.phone), read_only=True
        )
        self._raise_on_failure(existing, "create contact", phone=contact.phone)
        if existing.data is not None:
            logger.info("Contact already exists", extra={"phone": contact.phone})
            return False

        result = await self._repository.add(contact)
        if result.is_conflict:
            # lost a race with a concurrent insert of the same phone
            logger.info("Contact already exists", extra={"phone": contact.phone})
            return False
        self._raise_on_failure(result, "create contact", phone=contact.phone)

        logger.info("Contact created", extra={"phone": contact.phone})
        return True

    async def edit(self, contact: Contact) -> bool:
        """Overwrite every field of the contact with the same phone number.

        Returns:
            True if updated, False if no contact has that phone number.
        """
        existing = await self._repository.get_single(
            ContactRepository.by_phone(contact.phone), read_only=True
        )
        self._raise_on_failure(existing, "edit contact", phone=contact.phone)
        if existing.data is None:
            return False

        result = await self._repository.update(contact)
        self._raise_on_failure(result, "edit contact", phone=contact.phone)

        logger.info("Contact updated", extra={"phone": contact.phone})
        return True

    async def delete(self, where: ColumnElement[bool]) -> bool:
        """Remove the first contact matching ``where``.

        Returns:
            True if deleted, False if nothing matched.
        """
        existing = await self._repository.get_single(where, read_only=True)
        self._raise_on_failure(existing, "delete contact")
        if existing.data is None:
            return False

        result = await self._repository.remove(existing.data)
        self._raise_on_failure(result, "delete contact", phone=existing.data.phone)

        logger.info("Contact deleted", extra={"phone": existing.data.phone})
        return True

    async def upload_csv(self, content: bytes) -> CSVUploadResponse:
        """Create contacts from a CSV file, in file order.

        Malformed lines are skipped and reported. The upload stops at the first
        candidate that fails validation or duplicates an existing phone number;
        contacts created before that point are kept.

        Args:
            content: Raw CSV file content.

        Returns:
            Upload report with created and skipped counts.

        Raises:
            ValidationError: If the file cannot be decoded or a candidate is invalid.
            ConflictError: If a candidate's phone number already exists.
            StoreError: If the store fails.
        """
        importer = ContactCSVImporter(encoding=self._settings.csv_encoding)
        parsed = importer.parse(content)

        created = 0
        for candidate in parsed.candidates:
            contact = self._validated(candidate, created)
            if not await self.create(contact):
                raise ConflictError(
                    "Contact already exists",
                    details={
                        "line_number": candidate.line_number,
                        "phone": candidate.phone,
                        "created_count": created,
                    },
                )
            created += 1

        logger.info(
            "CSV upload completed",
            extra={
                "created_count": created,
                "skipped_count": len(parsed.skipped),
                "total_rows": parsed.total_rows,
            },
        )

        return CSVUploadResponse(
            created_count=created,
            skipped_count=len(parsed.skipped),
            total_rows=parsed.total_rows,
            skipped=parsed.skipped,
        )

    @staticmethod
    def _validated(candidate: ContactCandidate, created: int) -> Contact:
        try:
            data = candidate.to_create()
        except PydanticValidationError as e:
            errors = _field_errors(e)
            raise ValidationError(
                f"Line {candidate.line_number}: {errors[0]['message']}",
                details={
                    "line_number": candidate.line_number,
                    "errors": errors,
                    "created_count": created,
                },
            ) from e
        return Contact(**data.model_dump())

    @staticmethod
    def _search_filter(search: str | None) -> ColumnElement[bool] | None:
        if search and search.strip():
            return ContactRepository.matching(search)
        return None

    @staticmethod
    def _raise_on_failure(result: Result[Any], action: str, **context: Any) -> None:
        if result.success:
            return
        logger.error(
            "Failed to %s",
            action,
            extra={"error": result.error, "error_kind": result.error_kind, **context},
        )
        raise StoreError(details={"operation": action})
