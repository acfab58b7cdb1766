"""Exceptions raised by the habit store and the error taxonomy used to report them.

Transport modules translate ``googleapiclient`` and ``httplib2`` failures into
:class:`BackendError` / :class:`BackendUnavailableError` so the rest of the
package only ever deals with :class:`HabitStoreError` subclasses.  The
coordinator then uses :func:`classify_error` and :func:`describe_error` to turn
an exception into the category and message returned to callers.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence


class HabitStoreError(RuntimeError):
    """Base error raised when the habit store cannot complete an action."""


class BackendError(HabitStoreError):
    """Raised when Google Drive or Sheets answers with an error status."""

    def __init__(self, message: str, *, status: int = 0, reason: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason


class BackendUnavailableError(HabitStoreError):
    """Raised when the Google endpoints cannot be reached at all."""


class StoreNotReadyError(HabitStoreError):
    """Raised when no access token has been supplied yet."""


class HabitNotFoundError(HabitStoreError):
    """Raised when no live row carries the requested habit id."""

    def __init__(self, habit_id: str = "") -> None:
        super().__init__("Habit not found")
        self.habit_id = habit_id


class ColumnNotFoundError(HabitStoreError):
    """Raised when a column name is not part of the fixed header row."""

    def __init__(self, column_name: str) -> None:
        super().__init__(f"Column {column_name} not found")
        self.column_name = column_name


class HabitValidationError(HabitStoreError):
    """Raised for caller supplied values that break a record rule."""


class ErrorCategory(Enum):
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not-found"
    RATE_LIMIT = "rate-limit"
    SERVER = "server"
    UNKNOWN = "unknown"


_RATE_LIMIT_REASONS = {"ratelimitexceeded", "userratelimitexceeded", "quotaexceeded"}

_NETWORK_PATTERNS = ("network", "connection", "offline", "timed out", "unreachable")
_AUTHENTICATION_PATTERNS = ("401", "invalid_grant", "invalid credentials", "unauthenticated", "unauthorized")
_AUTHORIZATION_PATTERNS = ("403", "permission", "forbidden", "insufficient", "scope")
_NOT_FOUND_PATTERNS = ("not found", "404")
_RATE_LIMIT_PATTERNS = ("rate limit", "quota", "too many requests", "429")


def _matches(message: str, patterns: Sequence[str]) -> bool:
    return any(pattern in message for pattern in patterns)


def _category_for_status(status: int, reason: str = "") -> Optional[ErrorCategory]:
    if status == 0:
        return None
    if status == 400:
        return ErrorCategory.VALIDATION
    if status == 401:
        return ErrorCategory.AUTHENTICATION
    if status == 403:
        if reason.lower() in _RATE_LIMIT_REASONS:
            return ErrorCategory.RATE_LIMIT
        return ErrorCategory.AUTHORIZATION
    if status == 404:
        return ErrorCategory.NOT_FOUND
    if status == 429:
        return ErrorCategory.RATE_LIMIT
    if status >= 500:
        return ErrorCategory.SERVER
    return None


def classify_error(error: BaseException) -> ErrorCategory:
    """Return the :class:`ErrorCategory` for ``error``."""

    if isinstance(error, HabitValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(error, (HabitNotFoundError, ColumnNotFoundError)):
        return ErrorCategory.NOT_FOUND
    if isinstance(error, StoreNotReadyError):
        return ErrorCategory.AUTHENTICATION
    if isinstance(error, (BackendUnavailableError, ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, BackendError):
        category = _category_for_status(error.status, error.reason)
        if category is not None:
            return category

    message = str(error).lower()
    if _matches(message, _RATE_LIMIT_PATTERNS):
        return ErrorCategory.RATE_LIMIT
    if _matches(message, _AUTHENTICATION_PATTERNS):
        return ErrorCategory.AUTHENTICATION
    if _matches(message, _AUTHORIZATION_PATTERNS):
        return ErrorCategory.AUTHORIZATION
    if _matches(message, _NOT_FOUND_PATTERNS):
        return ErrorCategory.NOT_FOUND
    if _matches(message, _NETWORK_PATTERNS):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


_DEFAULT_MESSAGES = {
    ErrorCategory.NETWORK: "Network error: Google Drive could not be reached",
    ErrorCategory.AUTHENTICATION: "Authentication failed: please sign in again",
    ErrorCategory.AUTHORIZATION: "Permission denied: Google Drive or Sheets access is missing",
    ErrorCategory.NOT_FOUND: "Habit not found",
    ErrorCategory.RATE_LIMIT: "Too many requests to Google; try again later",
}


def describe_error(error: BaseException, category: Optional[ErrorCategory] = None) -> str:
    """Return a human readable message for ``error``.

    Errors raised by this package already carry a readable message.  Backend
    errors are summarised per category because their raw text is an HTTP dump.
    """

    category = category or classify_error(error)
    if isinstance(error, HabitStoreError) and not isinstance(error, (BackendError, BackendUnavailableError)):
        return str(error)
    if category is ErrorCategory.SERVER:
        status = getattr(error, "status", 0)
        return f"Google service error ({status})" if status else "Google service error"
    message = _DEFAULT_MESSAGES.get(category)
    if message:
        return message
    return str(error) or error.__class__.__name__


__all__ = [
    "BackendError",
    "BackendUnavailableError",
    "ColumnNotFoundError",
    "ErrorCategory",
    "HabitNotFoundError",
    "HabitStoreError",
    "HabitValidationError",
    "StoreNotReadyError",
    "classify_error",
    "describe_error",
]
