"""
Pydantic schemas for contact management.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contactmanager.config import get_settings
from contactmanager.contacts.validation import (
    validate_date_of_birth,
    validate_name,
    validate_phone_number,
    validate_salary,
)


def _check(error: str | None) -> None:
    if error:
        raise ValueError(error)


class ContactBase(BaseModel):
    """Fields shared by create and edit requests."""

    name: str = Field(..., description="Letters, spaces and hyphens; 2-50 characters")
    date_of_birth: date = Field(..., description="Not in the future")
    married: bool = Field(default=False, description="Marital status")
    salary: Decimal = Field(..., description="Strictly positive salary")

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        _check(validate_name(v))
        return v

    @field_validator("date_of_birth")
    @classmethod
    def check_date_of_birth(cls, v: date) -> date:
        _check(validate_date_of_birth(v, minimum_age=get_settings().minimum_contact_age))
        return v

    @field_validator("salary")
    @classmethod
    def check_salary(cls, v: Decimal) -> Decimal:
        _check(validate_salary(v))
        return v


class ContactCreate(ContactBase):
    """Schema for creating a contact."""

    phone: str = Field(..., description="International format, e.g. +15551234567")

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        _check(validate_phone_number(v))
        return v


class ContactUpdate(ContactBase):
    """Schema for editing a contact; the phone number comes from the path."""

    pass


class ContactResponse(BaseModel):
    """Schema for contact response."""

    model_config = ConfigDict(from_attributes=True)

    phone: str
    name: str
    date_of_birth: date
    married: bool
    salary: Decimal


class ContactListResponse(BaseModel):
    """Schema for contact list response."""

    items: list[ContactResponse]
    total: int


class ContactCandidate(BaseModel):
    """A contact parsed from CSV, not yet validated or persisted."""

    line_number: int = Field(..., description="Line number in the CSV file (1-indexed)")
    name: str
    date_of_birth: date
    married: bool
    phone: str
    salary: Decimal

    def to_create(self) -> ContactCreate:
        """Validate the candidate; raises pydantic.ValidationError on bad fields."""
        return ContactCreate.model_validate(self.model_dump(exclude={"line_number"}))


class CSVSkippedRow(BaseModel):
    """A CSV line the importer dropped."""

    line_number: int = Field(..., description="Line number in the CSV file (1-indexed)")
    reason: str = Field(..., description="Why the line was dropped")


class CSVImportResult(BaseModel):
    """Outcome of parsing a CSV upload."""

    candidates: list[ContactCandidate] = Field(default_factory=list)
    skipped: list[CSVSkippedRow] = Field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.candidates) + len(self.skipped)


class CSVUploadResponse(BaseModel):
    """Schema for CSV upload response."""

    created_count: int = Field(..., description="Contacts created from the file")
    skipped_count: int = Field(..., description="Malformed lines dropped by the parser")
    total_rows: int = Field(..., description="Data rows seen (created + skipped)")
    skipped: list[CSVSkippedRow] = Field(default_factory=list)
