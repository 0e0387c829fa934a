"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - use a specific subclass so callers can catch
    # precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # Yo, this is for "update by ID" operations on rows that vanished. Lookups that are
    # expected to miss (get_by_id, get_by_name) return None instead.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when entity validation fails.

    Used to signal that an entity's invariants have been violated
    (e.g., unknown storage type, sync called without a target).
    """

    pass


class BadFileError(DomainException):
    """Raised when a media file cannot be read or has no usable duration.

    Hey future me - this never escapes FileSynchronizer.sync()! The synchronizer catches it,
    stores the message for get_sync_error() and returns SyncResult.BAD_FILE. A broken file
    must not abort a batch scan.
    """

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class CoverStoreError(DomainException):
    """Writing a cover image to the artwork store failed.

    Raised inside the per-file transaction, so the Song/Album writes roll back with it.
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    Example:
        raise ConfigurationError("Artwork path is not a directory: /srv/art")
    """

    pass


class DatabaseBusyError(DomainException):
    """Database stayed locked after all retry attempts."""

    def __init__(self, message: str, attempts: int, total_wait_time: float) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.total_wait_time = total_wait_time


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "ValidationException",
    "BadFileError",
    "CoverStoreError",
    "ConfigurationError",
    "DatabaseBusyError",
]
