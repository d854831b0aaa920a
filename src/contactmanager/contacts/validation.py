"""
Field-level validation rules for contacts.

Each rule returns an error message, or None when the value is acceptable.
The pydantic schemas call these from their field validators.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

# "+" then 2-15 digits, first digit non-zero
PHONE_PATTERN = re.compile(r"^\+[1-9][0-9]{1,14}$")

# Letters, whitespace and hyphens only
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-]+$")

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50

SALARY_DECIMAL_PLACES = 2


def validate_phone_number(phone: str | None) -> str | None:
    if phone is None or not str(phone):
        return "Phone number is required"
    if not PHONE_PATTERN.fullmatch(str(phone)):
        return (
            "Invalid phone number format. Phone numbers must start with a + "
            "followed by up to 15 digits"
        )
    return None


def validate_name(name: str | None) -> str | None:
    if name is None or not str(name).strip():
        return "Name is required"
    name = str(name)
    if not NAME_PATTERN.fullmatch(name):
        return "Name can only contain letters, spaces and hyphens"
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        return f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
    return None


def calculate_age(date_of_birth: date, today: date) -> int:
    """Whole years between ``date_of_birth`` and ``today``."""
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def validate_date_of_birth(
    date_of_birth: Any,
    minimum_age: int = 0,
    today: date | None = None,
) -> str | None:
    """Reject unparseable dates, future dates and people younger than ``minimum_age``.

    Args:
        date_of_birth: A ``date`` or an ISO ``YYYY-MM-DD`` string.
        minimum_age: Minimum age in whole years.
        today: Reference date, defaults to the current local date.
    """
    if isinstance(date_of_birth, str):
        try:
            date_of_birth = date.fromisoformat(date_of_birth.strip())
        except ValueError:
            return "Invalid Date of Birth format"
    if isinstance(date_of_birth, datetime):
        date_of_birth = date_of_birth.date()
    if not isinstance(date_of_birth, date):
        return "Invalid Date of Birth format"

    today = today or date.today()
    if date_of_birth > today:
        return "Date of Birth cannot be in the future"
    if calculate_age(date_of_birth, today) < minimum_age:
        return f"You must be at least {minimum_age} years old"
    return None


def validate_salary(salary: Any) -> str | None:
    # An absent salary is left to the required-field check.
    if salary is None:
        return None
    try:
        value = salary if isinstance(salary, Decimal) else Decimal(str(salary))
    except (InvalidOperation, ValueError):
        return "Invalid salary format."
    if not value.is_finite():
        return "Invalid salary format."
    if value <= 0:
        return "Salary must be at least $1.00."
    # stored as Numeric(18, 2)
    if value.normalize().as_tuple().exponent < -SALARY_DECIMAL_PLACES:
        return f"Salary can have at most {SALARY_DECIMAL_PLACES} decimal places."
    return None
