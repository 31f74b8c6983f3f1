"""Processing - relationship aggregation and per-identifier state machine."""

from .aggregator import RelationshipAggregator
from .models import AggregatedRecord, ProcessingResult, ProcessingState
from .processor import RecordProcessor

__all__ = [
    "AggregatedRecord",
    "ProcessingResult",
    "ProcessingState",
    "RecordProcessor",
    "RelationshipAggregator",
]
