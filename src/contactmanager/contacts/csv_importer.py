"""
CSV parsing for contact uploads.

Expected layout, with or without the header row::

    Name,DateOfBirth,Married,Phone,Salary
    John Doe,1990-01-01,true,+15551234567,50000

Fields are split on the delimiter with no quoting support. Lines that cannot
be parsed are dropped and reported in ``CSVImportResult.skipped``. Name and
phone are taken verbatim; candidates are not validated here.
"""

import re
from datetime import date, datetime
from decimal import Decimal

from contactmanager.contacts.schemas import ContactCandidate, CSVImportResult, CSVSkippedRow
from contactmanager.shared.exceptions import ValidationError
from contactmanager.shared.logging import get_logger

logger = get_logger(__name__)

EXPECTED_HEADER = ("Name", "DateOfBirth", "Married", "Phone", "Salary")
MIN_FIELDS = len(EXPECTED_HEADER)

# Tried after ISO 8601
DATE_FORMATS = ("%m/%d/%Y", "%d.%m.%Y", "%Y/%m/%d")

DECIMAL_PATTERN = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


def is_header(fields: list[str]) -> bool:
    """Exact, case-sensitive match; a trailing CR on the last token is ignored."""
    if len(fields) != len(EXPECTED_HEADER):
        return False
    normalized = fields[:-1] + [fields[-1].removesuffix("\r")]
    return tuple(normalized) == EXPECTED_HEADER


def parse_date(value: str) -> date | None:
    value = value.strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_boolean(value: str) -> bool | None:
    cleaned = value.strip().lower()
    if cleaned == "true":
        return True
    if cleaned == "false":
        return False
    return None


def parse_decimal(value: str) -> Decimal | None:
    """Plain signed decimal notation only; no exponents or digit separators."""
    cleaned = value.strip()
    if not DECIMAL_PATTERN.fullmatch(cleaned):
        return None
    return Decimal(cleaned)


class ContactCSVImporter:
    """Parser for contact CSV files."""

    def __init__(
        self,
        delimiter: str = ",",
        encoding: str = "utf-8-sig",
    ) -> None:
        """Initialize CSV importer.

        Args:
            delimiter: CSV field delimiter.
            encoding: File encoding.
        """
        self.delimiter = delimiter
        self.encoding = encoding

    def parse(self, content: bytes) -> CSVImportResult:
        """Parse raw upload bytes into contact candidates.

        Args:
            content: Raw CSV file content.

        Returns:
            Accepted candidates and dropped lines, in file order.

        Raises:
            ValidationError: If the content cannot be decoded.
        """
        result = CSVImportResult()
        if not content:
            return result

        try:
            text = content.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise ValidationError(
                "File encoding error",
                details={"encoding": self.encoding, "error": str(e)},
            ) from e

        lines = text.split("\n")
        first_data_line = 1 if is_header(lines[0].split(self.delimiter)) else 0

        for line_number, line in enumerate(lines[first_data_line:], start=first_data_line + 1):
            if not line.strip():
                continue
            candidate, reason = self._parse_line(line_number, line)
            if candidate is None:
                result.skipped.append(CSVSkippedRow(line_number=line_number, reason=reason))
            else:
                result.candidates.append(candidate)

        logger.debug(
            "CSV parsed",
            extra={
                "header_present": first_data_line == 1,
                "accepted": len(result.candidates),
                "skipped": len(result.skipped),
            },
        )
        return result

    def _parse_line(
        self,
        line_number: int,
        line: str,
    ) -> tuple[ContactCandidate | None, str]:
        fields = line.split(self.delimiter)
        if len(fields) < MIN_FIELDS:
            return None, f"Expected {MIN_FIELDS} fields, found {len(fields)}"

        date_of_birth = parse_date(fields[1])
        if date_of_birth is None:
            return None, "Invalid date of birth"
        married = parse_boolean(fields[2])
        if married is None:
            return None, "Invalid married flag"
        salary = parse_decimal(fields[4])
        if salary is None:
            return None, "Invalid salary"

        candidate = ContactCandidate(
            line_number=line_number,
            name=fields[0],
            date_of_birth=date_of_birth,
            married=married,
            phone=fields[3],
            salary=salary,
        )
        return candidate, ""
