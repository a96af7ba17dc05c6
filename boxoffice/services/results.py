from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from boxoffice.services.errors import EngineError, ErrorKind


T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a success payload or the EngineError describing the rejection."""

    value: Optional[T] = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: EngineError) -> "Result[T]":
        return cls(error=error)
