"""Persistence layer - identifier source and CSV output sink."""

from .csv_sink import (
    LEI_RECORD_HEADERS,
    RELATIONSHIP_HEADERS,
    CsvRecordSink,
    RecordSink,
    compact_json,
    record_row,
    relationship_rows,
)
from .identifiers import SourceError, count_identifiers, read_identifiers

__all__ = [
    "LEI_RECORD_HEADERS",
    "RELATIONSHIP_HEADERS",
    "CsvRecordSink",
    "RecordSink",
    "compact_json",
    "record_row",
    "relationship_rows",
    "SourceError",
    "count_identifiers",
    "read_identifiers",
]
