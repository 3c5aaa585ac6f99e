"""Error taxonomy shared by the services and translated to HTTP by main.py."""

from typing import Any


class LocationGroupsError(Exception):
    """Base class for errors raised by location group services."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON error body."""
        return {'error': self.message}


class ValidationFailed(LocationGroupsError):
    """Input was malformed or out of range."""

    status_code = 400

    def __init__(
        self, message: str = 'Validation failed', details: list[dict[str, Any]] | None = None
    ) -> None:
        super().__init__(message)
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        """Serialize with field-level details."""
        return {'error': self.message, 'details': self.details}


class NoValidUpdatesError(ValidationFailed):
    """An update carried no recognised field."""

    def __init__(self) -> None:
        super().__init__('No valid updates provided')


class NotFoundError(LocationGroupsError):
    """The group or location does not exist or belongs to another device.

    The two cases are deliberately reported the same way.
    """

    status_code = 404


class PersistenceError(LocationGroupsError):
    """An unexpected storage failure; the transaction was rolled back."""

    status_code = 500
