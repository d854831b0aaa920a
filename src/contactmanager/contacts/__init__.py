from contactmanager.contacts.models import Contact
from contactmanager.contacts.repository import ContactRepository
from contactmanager.contacts.service import ContactService

__all__ = ["Contact", "ContactRepository", "ContactService"]
