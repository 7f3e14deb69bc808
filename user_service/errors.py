"""Exceptions raised by the user directory core and its persistence layer."""
from __future__ import annotations


class UserServiceError(RuntimeError):
    """Base class for failures surfaced to callers of the directory."""


class InvalidArgumentError(UserServiceError):
    """Raised when a request is rejected before any data is touched."""


class NotFoundError(UserServiceError):
    """Raised when a user, role, or page does not exist."""


class ConflictError(UserServiceError):
    """Raised when an email address is already registered."""


class InternalError(UserServiceError):
    """Raised when the persistence layer fails while writing."""


__all__ = [
    "ConflictError",
    "InternalError",
    "InvalidArgumentError",
    "NotFoundError",
    "UserServiceError",
]
