"""
Errors raised by the incident lifecycle manager and its store adapter.
"""

from typing import Optional


class IncidentError(Exception):
    """Base class for every incident service error."""
    pass


class InvalidInputError(IncidentError):
    """A required field is missing or a value is out of range."""
    pass


class InvalidSeverityError(InvalidInputError):
    pass


class InvalidStatusError(InvalidInputError):
    pass


class InvalidNoteError(InvalidInputError):
    pass


class InvalidEmailError(InvalidInputError):
    """Email failed format validation."""
    pass


class InvalidTransitionError(IncidentError):
    """Status change not permitted from the current status."""

    def __init__(self, current_status, new_status):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            f"cannot transition from {getattr(current_status, 'value', current_status)} "
            f"to {getattr(new_status, 'value', new_status)}"
        )


class IncidentNotFoundError(IncidentError):
    """No incident matches the given identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__("incident not found")


class PersistenceError(IncidentError):
    """The store rejected or failed an operation."""
    pass


class PartialFailureError(IncidentError):
    """
    Primary mutation persisted but the chained watcher add did not.

    Attributes:
        incident: The incident as persisted by the primary mutation
        cause: The error raised by the chained step
    """

    def __init__(self, message: str, incident, cause: Optional[Exception] = None):
        self.incident = incident
        self.cause = cause
        super().__init__(message)
