"""
Error types raised by the validation and persistence layers.

Route handlers translate these into ``{"error": ...}`` JSON bodies:
validation and precondition failures become 400s, storage failures 500s.
"""

from typing import Any, Dict, List, Optional


class ServiceError(Exception):
    """Base class for errors the API reports back to the caller."""


class ValidationError(ServiceError):
    """One or more fields are missing or malformed."""

    def __init__(self, fields: List[str], messages: Optional[List[str]] = None):
        self.fields = list(fields)
        self.messages = list(messages) if messages is not None else [f"{f} is invalid" for f in fields]
        super().__init__("; ".join(self.messages))


class StorageError(ServiceError):
    """The document store could not be reached or rejected the operation."""


class PreconditionError(ServiceError):
    """The request cannot proceed as submitted (missing identity, taken username)."""


USER_ID_REQUIRED = "User ID is required"
USERNAME_TAKEN = "Username is already taken"


def error_response(message: Any) -> Dict[str, Any]:
    """Build the error body shared by every failing route."""
    return {"error": message}
