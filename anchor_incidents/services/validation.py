"""
Field validation for incident requests.

All checks here run before any store call, so a failing request never
mutates state.
"""

from typing import Optional

import email_validator
from email_validator import EmailNotValidError, validate_email as _validate_email

from anchor_incidents.models.incident import IncidentSeverity, IncidentStatus, NoteType
from anchor_incidents.services.errors import (
    InvalidInputError,
    InvalidSeverityError,
    InvalidStatusError,
    InvalidNoteError,
    InvalidEmailError,
)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 255
NOTE_MIN_LENGTH = 1
NOTE_MAX_LENGTH = 1000

# Addresses are checked for format only, so special-use domains such as
# .local and localhost are accepted.
email_validator.SPECIAL_USE_DOMAIN_NAMES.clear()


def validate_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise InvalidInputError("title is required")
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise InvalidInputError(
            f"title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters"
        )
    return title


def parse_severity(value) -> IncidentSeverity:
    try:
        return IncidentSeverity(value)
    except ValueError:
        raise InvalidSeverityError(f"invalid severity: {value}")


def parse_status(value) -> IncidentStatus:
    try:
        return IncidentStatus(value)
    except ValueError:
        raise InvalidStatusError(f"invalid status: {value}")


def parse_note_type(value) -> NoteType:
    """Missing note types default to `update`."""
    if value is None or value == "":
        return NoteType.UPDATE
    try:
        return NoteType(value)
    except ValueError:
        raise InvalidNoteError(f"invalid note type: {value}")


def validate_note_content(content: Optional[str]) -> str:
    if content is None or len(content) < NOTE_MIN_LENGTH:
        raise InvalidNoteError("note content is required")
    if len(content) > NOTE_MAX_LENGTH:
        raise InvalidNoteError(f"note content must be at most {NOTE_MAX_LENGTH} characters")
    return content


def validate_email(email: Optional[str]) -> str:
    """
    Validate email format. No DNS, deliverability or domain-policy check is made.

    Returns:
        str: Normalized email address

    Raises:
        InvalidEmailError: If the address is empty or malformed
    """
    if email is None or not email.strip():
        raise InvalidEmailError("invalid email: email is required")
    try:
        valid = _validate_email(email.strip(), check_deliverability=False, globally_deliverable=False)
    except EmailNotValidError as e:
        raise InvalidEmailError(f"invalid email: {e}")
    return valid.normalized


def optional_email(email: Optional[str]) -> Optional[str]:
    """Blank means "no email"; anything else must be a valid address."""
    if email is None or not email.strip():
        return None
    return validate_email(email)
