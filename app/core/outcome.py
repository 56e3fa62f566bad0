"""Outcomes of best-effort engagement writes.

Logging and counter updates must never fail a user request. Instead of
catching and discarding their errors, the services return one of these values
so callers and tests can see what happened.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Recorded(Generic[T]):
    value: T


@dataclass(frozen=True)
class Skipped:
    reason: str


@dataclass(frozen=True)
class Absorbed:
    """A failure that was logged and deliberately not raised."""

    stage: str
    error: str


LogOutcome = Union[Recorded[Any], Skipped, Absorbed]


def recorded_value(outcome: LogOutcome, default: Any = None) -> Any:
    """Return the recorded value, or ``default`` for skipped/absorbed outcomes."""
    if isinstance(outcome, Recorded):
        return outcome.value
    return default
