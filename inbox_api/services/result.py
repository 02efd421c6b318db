from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from inbox_api.services.errors import InboxError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of a step whose failure must not abort the caller (e.g. bot replies)."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    status_code: Optional[int] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown", status_code: int = 500) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code, status_code=status_code)

    @staticmethod
    def from_error(exc: InboxError) -> "Result[T]":
        return Result(ok=False, error=exc.message, error_code=exc.code, status_code=exc.status_code)

    @property
    def retryable(self) -> bool:
        """Store outages and transport errors may succeed on a later attempt."""
        return not self.ok and self.status_code in (502, 503)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
