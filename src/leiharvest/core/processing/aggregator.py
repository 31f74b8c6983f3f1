"""
Relationship aggregation.

Fetches the present relationship slots of a record in fixed order and stops
at the first failure: one broken relationship invalidates the whole record.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from leiharvest.core.fetch.outcome import Failure, FailureKind, FetchOutcome, Success

if TYPE_CHECKING:
    from leiharvest.core.registry.client import RegistryClient
    from leiharvest.core.registry.models import RelationshipLinkSet

logger = logging.getLogger(__name__)

RelationshipPayloads = tuple[tuple[str, dict[str, Any]], ...]


class RelationshipAggregator:
    """Fail-fast fetcher for a record's relationship links."""

    def __init__(self, client: RegistryClient):
        self.client = client

    async def aggregate(self, link_set: RelationshipLinkSet) -> FetchOutcome[RelationshipPayloads]:
        """Fetch every present slot, aborting on the first failure.

        Args:
            link_set: The record's relationship slots

        Returns:
            Success with (name, payload) pairs for the present slots in fixed
            order, or an aggregation Failure naming the slot that broke
        """
        fetched: list[tuple[str, dict[str, Any]]] = []
        attempts = 0

        for slot in link_set.present():
            outcome = await self.client.fetch_related(slot.name, slot.url)
            attempts += outcome.attempts

            if not outcome.ok:
                logger.warning(
                    "Relationship '%s' failed, abandoning remaining relationships: %s",
                    slot.name,
                    outcome.reason,
                    extra={"relationship": slot.name, "url": slot.url},
                )
                return Failure(
                    reason=f"{slot.name}: {outcome.reason}",
                    kind=FailureKind.AGGREGATION,
                    subject=slot.url,
                    attempts=attempts,
                )

            fetched.append((slot.name, outcome.payload))

        return Success(tuple(fetched), attempts=attempts)
