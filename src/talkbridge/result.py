"""Return value carrier shared by every talker operation."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Operation value plus an optional human-readable message.

    A failed operation carries a message. A failure caused by an elapsed wait
    additionally sets ``timed_out`` because the target may still complete the
    action on its own.
    """

    value: T | None = None
    message: str | None = None
    timed_out: bool = False

    def __iter__(self) -> Iterator[Any]:
        yield self.value
        yield self.message

    @classmethod
    def ok(cls, value: T, message: str | None = None) -> Result[T]:
        return cls(value, message)

    @classmethod
    def fail(cls, message: str, value: T | None = None) -> Result[T]:
        return cls(value, message)

    @classmethod
    def timeout(cls, message: str, value: T | None = None) -> Result[T]:
        return cls(value, message, timed_out=True)

    def with_value(self, value: U) -> Result[U]:
        """Keep the message and timeout flag but swap the value."""
        return Result(value, self.message, self.timed_out)


def exception_message(exc: BaseException) -> str:
    text = str(exc)
    return text or f"{type(exc).__name__} was raised."
