"""
Record processor.

Turns one identifier into a single pass/fail result:

    START -> FETCHING_PRIMARY -> FETCHING_RELATIONSHIPS -> COMPLETE
                    |                      |
                    +------> SKIPPED <-----+

Retrying lives in the fetcher; every failure reaching this layer has already
been written to the failure log.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from leiharvest.core.registry.models import RelationshipLinkSet

from .models import AggregatedRecord, ProcessingResult, ProcessingState

if TYPE_CHECKING:
    from leiharvest.core.registry.client import RegistryClient

    from .aggregator import RelationshipAggregator

logger = logging.getLogger(__name__)


class RecordProcessor:
    """Orchestrates the primary fetch and relationship aggregation."""

    def __init__(self, client: RegistryClient, aggregator: RelationshipAggregator):
        self.client = client
        self.aggregator = aggregator

    async def process(self, identifier: str) -> ProcessingResult:
        """Process one identifier.

        Args:
            identifier: LEI to fetch

        Returns:
            ProcessingResult in COMPLETE state with an AggregatedRecord, or in
            SKIPPED state with the failure reason
        """
        result = ProcessingResult(identifier=identifier)
        logger.info("Processing LEI %s", identifier, extra={"lei": identifier})

        result.advance(ProcessingState.FETCHING_PRIMARY)
        primary = await self.client.fetch_record(identifier)
        if not primary.ok:
            logger.warning(
                "Skipping LEI %s due to main record fetch failure",
                identifier,
                extra={"lei": identifier},
            )
            result.reason = primary.reason
            result.advance(ProcessingState.SKIPPED)
            return result

        record = primary.payload.data
        link_set = RelationshipLinkSet.from_relationships(record.relationships)

        if not link_set.has_links:
            result.record = AggregatedRecord(identifier=identifier, record=record)
            result.advance(ProcessingState.COMPLETE)
            logger.info("LEI %s has no relationship links", identifier, extra={"lei": identifier})
            return result

        result.advance(ProcessingState.FETCHING_RELATIONSHIPS)
        aggregated = await self.aggregator.aggregate(link_set)
        if not aggregated.ok:
            logger.warning(
                "Skipping LEI %s due to partial data failure (%s)",
                identifier,
                aggregated.reason,
                extra={"lei": identifier},
            )
            result.reason = aggregated.reason
            result.advance(ProcessingState.SKIPPED)
            return result

        result.record = AggregatedRecord(
            identifier=identifier,
            record=record,
            relationships=aggregated.payload,
        )
        result.advance(ProcessingState.COMPLETE)
        logger.info(
            "All data for LEI %s fetched (%d relationship(s))",
            identifier,
            len(aggregated.payload),
            extra={"lei": identifier},
        )
        return result
