from __future__ import annotations
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from .errors import ClassifiedError, error_for

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: ClassifiedError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        """Raise the matching ProviderError; for callers that prefer exceptions."""
        raise error_for(self.error)


Outcome = Union[Success[T], Failure]
