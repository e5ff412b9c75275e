"""
Error taxonomy and the Result type threaded through the sync layer.

Validation problems are raised. Remote failures are *returned* inside a
Result so callers decide the fallback explicitly instead of inferring an
"offline mode" from caught exceptions. The sync service re-raises
Unauthenticated, which has no offline fallback; the app renders it as a 401.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class GradeTrackerError(Exception):
    """Base class for every error this application raises on purpose."""

    code = "GRADE_TRACKER_ERROR"
    http_status = 500

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class InvalidDateFormat(GradeTrackerError, ValueError):
    """A date string could not be split into year, month and day."""

    code = "INVALID_DATE_FORMAT"
    http_status = 400

    def __init__(self, value: object, reason: str = ""):
        self.value = value
        msg = f"Invalid date format: {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "field": "date"}


class ValidationError(GradeTrackerError, ValueError):
    """User-supplied grade data breaks an invariant (range, uniqueness, shape)."""

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        data = {"error": str(self), "code": self.code}
        if self.field:
            data["field"] = self.field
        return data


class RemoteError(GradeTrackerError):
    """Failure talking to the remote CMS. Returned in a Result, not raised."""

    code = "REMOTE_ERROR"
    http_status = 502

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class Unauthenticated(RemoteError):
    code = "UNAUTHENTICATED"
    http_status = 401


class ServiceUnavailable(RemoteError):
    code = "SERVICE_UNAVAILABLE"
    http_status = 503


class MalformedResponse(RemoteError):
    code = "MALFORMED_RESPONSE"
    http_status = 502


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a RemoteError, never both."""

    value: Optional[T] = None
    error: Optional[RemoteError] = None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: RemoteError) -> Result[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def is_failure(self, kind: type[RemoteError]) -> bool:
        return isinstance(self.error, kind)
