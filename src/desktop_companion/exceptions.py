"""Exceptions raised by the Desktop Companion core."""


class CompanionError(Exception):
    """Base exception for the Desktop Companion."""


class ValidationError(CompanionError):
    """Input is missing or malformed; raised before any I/O."""


class StorageError(CompanionError):
    """The persisted settings record cannot be read or written."""


class RegistrationError(CompanionError):
    """The hub rejected the registration or could not be reached."""


class PushError(CompanionError):
    """A single sensor update could not be delivered."""

    def __init__(self, message: str, sensor_id: str = "", status: int = None):
        super().__init__(message)
        self.sensor_id = sensor_id
        self.status = status


class WebhookGoneError(PushError):
    """The hub no longer knows the device webhook; re-registration required."""


class NotFoundError(CompanionError):
    """Unknown sensor id."""
