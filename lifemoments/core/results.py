"""Service Results — discriminated success/failure values returned by the service.

Invariants:
    - Ok.ok is always True, Err.ok is always False (use as the discriminator)
    - Err.error is always a LifeMomentsError — never a driver exception

Design Decisions:
    - Results for expected conditions (validation, not-found, storage) instead of
      raising: the UI layer renders every failure, so every failure is a value
"""

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

from lifemoments.core.errors import LifeMomentsError


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: Literal[True] = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: LifeMomentsError
    ok: Literal[False] = False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err]
