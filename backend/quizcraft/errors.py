"""Domain errors raised by services and repositories.

Each error carries the HTTP status it maps to; `main` registers a single
exception handler for the base class.
"""

from typing import List, Optional


class QuizcraftError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(QuizcraftError):
    """Required request fields are missing or empty."""
    status_code = 400

    def __init__(self, fields: List[str], message: str = "Missing required fields"):
        super().__init__(message)
        self.fields = fields

    def to_dict(self) -> dict:
        return {"error": self.message, "fields": self.fields}


class AuthenticationError(QuizcraftError):
    """Missing, invalid or expired token, or bad credentials."""
    status_code = 401

    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


class AuthorizationError(QuizcraftError):
    """The authenticated user may not modify the target entity."""
    status_code = 403

    def __init__(self, message: str = "only the creator may modify this quiz"):
        super().__init__(message)


class NotFoundError(QuizcraftError):
    status_code = 404

    def __init__(self, entity: str, key):
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class ConflictError(QuizcraftError):
    status_code = 409


class DatastoreUnavailableError(QuizcraftError):
    """The datastore timed out or is locked; the client may retry."""
    status_code = 503

    def __init__(self, message: str = "datastore unavailable, retry later", retry_after: Optional[int] = 1):
        super().__init__(message)
        self.retry_after = retry_after
