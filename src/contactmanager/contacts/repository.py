"""
Contact repository for database operations.
"""

from sqlalchemy import ColumnElement, or_

from contactmanager.contacts.models import Contact
from contactmanager.shared.repository import GenericRepository

# Columns a contact list can be ordered by
SORTABLE_COLUMNS = {
    "phone": Contact.phone,
    "name": Contact.name,
    "date_of_birth": Contact.date_of_birth,
    "married": Contact.married,
    "salary": Contact.salary,
}


class ContactRepository(GenericRepository[Contact]):
    """Repository for contact database operations."""

    model = Contact

    @staticmethod
    def by_phone(phone: str) -> ColumnElement[bool]:
        return Contact.phone == phone

    @staticmethod
    def matching(search: str) -> ColumnElement[bool]:
        """Case-insensitive substring match on name or phone."""
        escaped = (
            search.strip()
            .replace("\\", "\\\\")
            .replace("%", "\\%")
            .replace("_", "\\_")
        )
        pattern = f"%{escaped}%"
        return or_(
            Contact.name.ilike(pattern, escape="\\"),
            Contact.phone.ilike(pattern, escape="\\"),
        )
