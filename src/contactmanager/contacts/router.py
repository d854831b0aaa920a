"""
Contact API router.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from contactmanager.config import get_settings
from contactmanager.contacts.models import Contact
from contactmanager.contacts.repository import ContactRepository
from contactmanager.contacts.schemas import (
    ContactCreate,
    ContactListResponse,
    ContactResponse,
    ContactUpdate,
    CSVUploadResponse,
)
from contactmanager.contacts.service import ContactService
from contactmanager.shared.database import get_db_session
from contactmanager.shared.exceptions import ConflictError, NotFoundError, ValidationError
from contactmanager.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


def get_contact_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ContactService:
    """Dependency for contact service."""
    return ContactService(session=session)


@router.get(
    "",
    response_model=ContactListResponse,
    summary="List contacts",
    description="List contacts with optional search, sorting and paging.",
)
async def list_contacts(
    service: Annotated[ContactService, Depends(get_contact_service)],
    search: Annotated[str | None, Query(max_length=100)] = None,
    sort: Annotated[str | None, Query(description="phone, name, date_of_birth, married or salary")] = None,
    descending: bool = False,
    skip: Annotated[int | None, Query(ge=0)] = None,
    take: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> ContactListResponse:
    contacts = await service.list_contacts(
        search=search,
        sort_by=sort,
        descending=descending,
        skip=skip,
        take=take,
    )
    total = await service.count_contacts(search=search)
    return ContactListResponse(
        items=[ContactResponse.model_validate(c) for c in contacts],
        total=total,
    )


@router.post(
    "/upload",
    response_model=CSVUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload contacts CSV",
    description="Create contacts from a CSV file with columns "
    "Name,DateOfBirth,Married,Phone,Salary (header row optional).",
)
async def upload_contacts_csv(
    file: Annotated[UploadFile, File(description="CSV file with contacts")],
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> CSVUploadResponse:
    """Upload contacts from a CSV file.

    Malformed lines are skipped and listed in the response. The upload stops
    at the first invalid row (400) or duplicate phone number (409); contacts
    created before that row are kept.
    """
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise ValidationError("Please upload a valid CSV file.")

    max_bytes = get_settings().max_upload_bytes
    too_large = ValidationError("File is too large", details={"max_upload_bytes": max_bytes})
    if file.size is not None and file.size > max_bytes:
        raise too_large

    # never buffer more than one byte past the limit
    content = await file.read(max_bytes + 1)
    if not content:
        raise ValidationError("No file selected")
    if len(content) > max_bytes:
        raise too_large

    logger.info(
        "CSV upload started",
        extra={"upload_filename": file.filename, "size_bytes": len(content)},
    )
    return await service.upload_csv(content)


@router.get(
    "/{phone}",
    response_model=ContactResponse,
    summary="Get contact",
)
async def get_contact(
    phone: str,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactResponse:
    contact = await service.find(ContactRepository.by_phone(phone))
    if contact is None:
        raise NotFoundError("Contact is not found", details={"phone": phone})
    return ContactResponse.model_validate(contact)


@router.post(
    "",
    response_model=ContactResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create contact",
)
async def create_contact(
    request: ContactCreate,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactResponse:
    contact = Contact(**request.model_dump())
    if not await service.create(contact):
        raise ConflictError("Contact already exists", details={"phone": request.phone})
    return ContactResponse(**request.model_dump())


@router.put(
    "/{phone}",
    response_model=ContactResponse,
    summary="Edit contact",
    description="Overwrite every field of an existing contact. The phone number cannot change.",
)
async def edit_contact(
    phone: str,
    request: ContactUpdate,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactResponse:
    contact = Contact(phone=phone, **request.model_dump())
    if not await service.edit(contact):
        raise NotFoundError("Contact is not found", details={"phone": phone})
    return ContactResponse(phone=phone, **request.model_dump())


@router.delete(
    "/{phone}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete contact",
)
async def delete_contact(
    phone: str,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> Response:
    if not await service.delete(ContactRepository.by_phone(phone)):
        raise NotFoundError("Contact is not found", details={"phone": phone})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
