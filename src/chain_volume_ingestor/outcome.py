"""Result-style outcomes for operations that may degrade instead of failing.

Components that substitute a fallback value (empty transaction list, fixed
prices, full block range) return ``Degraded`` so callers can tell
"succeeded" apart from "usable but degraded". ``Fatal`` carries an error the
run cannot recover from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_degraded(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Degraded(Generic[T]):
    value: T
    cause: BaseException | str

    @property
    def is_degraded(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Fatal:
    cause: BaseException

    @property
    def is_degraded(self) -> bool:
        return True

    def unwrap(self) -> None:
        raise self.cause


Outcome = Union[Ok[T], Degraded[T]]
RunOutcome = Union[Ok[T], Degraded[T], Fatal]
