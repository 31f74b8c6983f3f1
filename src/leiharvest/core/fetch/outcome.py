"""
Tagged fetch outcomes.

Every outbound call resolves to exactly one of ``Success`` or ``Failure``;
callers branch on ``outcome.ok`` instead of catching exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class FailureKind(str, Enum):
    """Classification of a failed outcome."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    DECODE = "decode"
    AGGREGATION = "aggregation"


@dataclass(frozen=True)
class Success(Generic[T]):
    """A call that produced a fully decoded payload."""

    payload: T
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """A call that gave up. ``reason`` is the innermost error message."""

    reason: str
    kind: FailureKind = FailureKind.PERMANENT
    subject: str | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return False


FetchOutcome = Union[Success[T], Failure]
