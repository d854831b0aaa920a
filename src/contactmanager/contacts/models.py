"""
SQLAlchemy models for contacts.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from contactmanager.contacts.validation import NAME_MAX_LENGTH, SALARY_DECIMAL_PLACES
from contactmanager.shared.database import Base

# "+" and at most 15 digits
PHONE_MAX_LENGTH = 16


class Contact(Base):
    """A contact record, identified by its phone number."""

    __tablename__ = "contacts"

    # Primary key doubles as the store-level uniqueness guarantee for phone.
    phone: Mapped[str] = mapped_column(
        String(PHONE_MAX_LENGTH),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(
        String(NAME_MAX_LENGTH),
        nullable=False,
        index=True,
    )
    date_of_birth: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )
    married: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    salary: Mapped[Decimal] = mapped_column(
        Numeric(18, SALARY_DECIMAL_PLACES),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Contact(phone={self.phone}, name={self.name})>"
