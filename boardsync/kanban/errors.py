"""
Board error taxonomy.

ValidationError is raised locally before any remote call. The other kinds are
only known once a remote call resolves and are mapped from the response
envelope's error code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from boardsync.kanban.envelope import ApiError


class BoardError(Exception):
    """Base class for every board operation failure."""

    default_code = "BOARD_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __str__(self) -> str:
        return self.message


class ValidationError(BoardError):
    """Client-detectable input problem (name length, uniqueness, WIP range)."""

    default_code = "VALIDATION_ERROR"


class ConflictError(BoardError):
    """Rejected because of a referential constraint (e.g. status still in use)."""

    default_code = "CONFLICT"


class TransportError(BoardError):
    """Network failure, timeout or unexpected payload shape."""

    default_code = "TRANSPORT_ERROR"


class NotFoundError(BoardError):
    """The issue or status no longer exists."""

    default_code = "NOT_FOUND"


CONFLICT_CODES = {"409", "CONFLICT", "STATUS_IN_USE"}
VALIDATION_CODES = {"400", "422", "VALIDATION_ERROR"}
VALIDATION_PREFIXES = ("MISSING_", "INVALID_")


def error_from_response(error: "ApiError | None", default_message: str) -> BoardError:
    """
    Map a failure envelope's error to a BoardError subclass.

    Args:
        error: Envelope error (may be None for a bare failure)
        default_message: Message used when the envelope carries none

    Returns:
        BoardError instance (not raised)
    """
    if error is None:
        return TransportError(default_message)

    message = error.message or default_message
    code = (error.code or "").upper()

    if code in CONFLICT_CODES:
        return ConflictError(message, code)
    if code == "404" or code.endswith("NOT_FOUND"):
        return NotFoundError(message, code)
    if code in VALIDATION_CODES or code.startswith(VALIDATION_PREFIXES):
        return ValidationError(message, code)
    return TransportError(message, code or None)
