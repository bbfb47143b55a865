"""Error taxonomy for calls against the remote progress store.

Every failure that crosses the repository client boundary is one of these.
Raw transport exceptions never escape the client.
"""

from dataclasses import dataclass
from typing import Optional


class TrackerError(Exception):
    """Base class for all errors surfaced to the controller and form layer."""

    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(TrackerError):
    """Missing or rejected bearer token."""

    default_message = "Authentication required. Please log in."


class NetworkError(TrackerError):
    """Transport failure or timeout."""

    default_message = "Could not reach the progress server."


class ServerError(TrackerError):
    """Non-2xx answer from the progress server."""

    default_message = "The progress server returned an error."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AggregateUnavailableError(ServerError):
    """The server could not produce a usable weekly aggregate."""

    default_message = "Weekly statistics are not available from the server."


class ConflictError(ServerError):
    """An entry already exists for the (user, date) pair."""

    default_message = "An entry for this date already exists."


@dataclass(frozen=True)
class FieldError:
    """A single field-scoped validation problem."""

    field: str
    message: str


class ValidationError(TrackerError):
    """Submitted entry failed validation."""

    default_message = "The entry is invalid."

    def __init__(self, errors: Optional[list[FieldError]] = None, message: Optional[str] = None):
        self.errors = list(errors or [])
        if message is None and self.errors:
            message = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(message)
