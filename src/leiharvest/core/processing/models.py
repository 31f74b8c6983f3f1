"""
Processing data structures: states, results and the aggregated record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from leiharvest.core.registry.models import LeiRecord


class ProcessingState(str, Enum):
    """States of one identifier's processing pass."""

    START = "START"
    FETCHING_PRIMARY = "FETCHING_PRIMARY"
    FETCHING_RELATIONSHIPS = "FETCHING_RELATIONSHIPS"
    COMPLETE = "COMPLETE"
    SKIPPED = "SKIPPED"

    @property
    def terminal(self) -> bool:
        return self in (ProcessingState.COMPLETE, ProcessingState.SKIPPED)


@dataclass(frozen=True)
class AggregatedRecord:
    """A primary record with every present relationship fetched.

    Only built once the primary fetch and all present relationship fetches
    have succeeded.
    """

    identifier: str
    record: LeiRecord
    relationships: tuple[tuple[str, dict[str, Any]], ...] = ()

    def relationship(self, name: str) -> dict[str, Any] | None:
        for link_name, payload in self.relationships:
            if link_name == name:
                return payload
        return None


@dataclass
class ProcessingResult:
    """Outcome of processing one identifier."""

    identifier: str
    state: ProcessingState = ProcessingState.START
    record: AggregatedRecord | None = None
    reason: str | None = None
    path: list[ProcessingState] = field(default_factory=lambda: [ProcessingState.START])

    @property
    def complete(self) -> bool:
        return self.state is ProcessingState.COMPLETE

    @property
    def skipped(self) -> bool:
        return self.state is ProcessingState.SKIPPED

    def advance(self, state: ProcessingState) -> None:
        """Move to the next state and remember the transition."""
        if self.state.terminal:
            raise RuntimeError(f"{self.identifier}: cannot leave terminal state {self.state.value}")
        self.state = state
        self.path.append(state)
