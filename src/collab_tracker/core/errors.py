# src/collab_tracker/core/errors.py

from __future__ import annotations


class StorageError(Exception):
    """Base class for failures raised by a persistence backend."""


class NetworkFailure(StorageError):
    """Backend unreachable, timed out, or answered with a server error."""


class ValidationFailure(StorageError):
    """A record or partial update violates a constraint."""


class NotFound(StorageError):
    """Update/delete addressed an id that does not exist."""


class ConfigurationFailure(StorageError):
    """Backend is not configured, or rejects our credentials/schema."""


def describe(exc: BaseException) -> str:
    """Human-readable sentence for the error banner."""
    detail = str(exc).strip()
    if isinstance(exc, NetworkFailure):
        head = "Remote store unreachable"
    elif isinstance(exc, ConfigurationFailure):
        head = "Remote store not configured"
    elif isinstance(exc, ValidationFailure):
        head = "Invalid data"
    elif isinstance(exc, NotFound):
        head = "Record not found"
    elif isinstance(exc, StorageError):
        head = "Storage error"
    else:
        head = "Unexpected error"
    return f"{head}: {detail}" if detail else head
