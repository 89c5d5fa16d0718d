"""
Uniform response envelope.

Every backend wraps its results as ``{success, data, error: {message, code}}``.
The engine treats a ``success: false`` envelope, a transport failure and a
missing expected payload the same way: as an operation failure.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from boardsync.kanban.errors import BoardError, TransportError, error_from_response

T = TypeVar("T")


@dataclass(frozen=True)
class ApiError:
    """Failure details: human-readable message and optional machine code."""
    message: str
    code: str | None = None


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    """Success flag with either a payload or an error."""
    success: bool
    data: T | None = None
    error: ApiError | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "ApiResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, code: str | None = None) -> "ApiResponse[T]":
        return cls(success=False, error=ApiError(message=message, code=code))

    @classmethod
    def from_payload(cls, payload: Any) -> "ApiResponse[Any]":
        """
        Build an envelope from a decoded JSON body.

        Bodies without a ``success`` key are treated as bare successful
        payloads, mirroring how the web client unwraps ``data``.
        """
        if not isinstance(payload, dict):
            return cls.ok(payload)

        if payload.get("success") is False:
            error = payload.get("error") or {}
            if not isinstance(error, dict):
                error = {"message": str(error)}
            message = error.get("message") or payload.get("message") or "An error occurred"
            code = error.get("code")
            return cls.fail(str(message), str(code) if code is not None else None)

        if "data" in payload:
            return cls.ok(payload["data"])
        if "success" in payload:
            # Envelope without data (e.g. delete)
            return cls.ok(None)
        return cls.ok(payload)

    def map(self, func) -> "ApiResponse[Any]":
        """Transform the payload of a successful envelope."""
        if not self.success or self.data is None:
            return self
        return ApiResponse.ok(func(self.data))

    def unwrap(self, default_message: str, require_data: bool = True) -> T:
        """
        Return the payload or raise the mapped BoardError.

        Args:
            default_message: Message used when the envelope carries none
            require_data: Treat a successful envelope without payload as failure

        Raises:
            BoardError: ConflictError, NotFoundError, ValidationError or TransportError
        """
        if not self.success:
            raise error_from_response(self.error, default_message)
        if require_data and self.data is None:
            raise TransportError(f"{default_message}: response payload missing")
        return self.data  # type: ignore[return-value]


def failure_from_exception(exc: Exception) -> ApiResponse[Any]:
    """Envelope for an exception raised below the service boundary."""
    if isinstance(exc, BoardError):
        return ApiResponse.fail(exc.message, exc.code)
    return ApiResponse.fail(str(exc) or exc.__class__.__name__)
