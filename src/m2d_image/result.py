"""Explicit success/failure values returned by each resolution stage."""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful stage output."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed stage output with a short reason and the underlying error."""

    reason: str
    error: Exception | None = None

    def __str__(self) -> str:
        if self.error is None:
            return self.reason
        return f"{self.reason}: {self.error}"


StageResult = Ok[T] | Err
