"""
CSV output sink.

Appends one row per aggregated record to the records file and one row per
relationship resource to the relationships file.
"""

from __future__ import annotations

import csv
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable

import orjson

from leiharvest.core.processing.models import AggregatedRecord
from leiharvest.core.registry.models import related_entries

logger = logging.getLogger(__name__)


LEI_RECORD_HEADERS = [
    "id",
    "lei",
    "legalName",
    "registeredAs",
    "jurisdiction",
    "status",
    "initialRegistrationDate",
    "lastUpdateDate",
    "nextRenewalDate",
    "managingLou",
    "bic",
]

RELATIONSHIP_HEADERS = ["relationshipType", "id", "type", "attributes"]


class RecordSink(ABC):
    """Destination for fully aggregated records."""

    @abstractmethod
    def write(self, record: AggregatedRecord) -> None:
        """Write one record. Errors propagate to the caller."""
        pass

    def close(self) -> None:
        pass


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def record_row(record: AggregatedRecord) -> list[str]:
    """Format the primary record row."""
    data = record.record
    attributes = data.attributes
    entity = attributes.entity
    registration = attributes.registration

    return [
        _text(data.id),
        _text(attributes.lei),
        _text(entity.legal_name.name),
        _text(entity.registered_as),
        _text(entity.jurisdiction),
        _text(entity.status),
        _text(registration.initial_registration_date),
        _text(registration.last_update_date),
        _text(registration.next_renewal_date),
        _text(registration.managing_lou),
        "|".join(attributes.bic) if attributes.bic else "",
    ]


def compact_json(value: Any) -> str:
    """Serialize to single-line JSON with CR/LF removed."""
    text = orjson.dumps(value).decode("utf-8")
    return text.replace("\n", "").replace("\r", "")


def relationship_rows(record: AggregatedRecord) -> list[list[str]]:
    """Format one row per resource object of every relationship."""
    rows = []
    for relationship_type, payload in record.relationships:
        for entry in related_entries(payload):
            attributes = entry.get("attributes")
            rows.append([
                relationship_type,
                _text(entry.get("id")),
                _text(entry.get("type")),
                compact_json(attributes) if attributes is not None else "",
            ])
    return rows


class CsvRecordSink(RecordSink):
    """Append-only CSV writer for records and their relationships.

    Headers are written once, when a file is new or empty. Every row of a
    record is formatted before anything is written.
    """

    def __init__(
        self,
        lei_records_path: Path | str = Path("output/lei_records.csv"),
        relationship_records_path: Path | str = Path("output/relationship_records.csv"),
    ):
        self.lei_records_path = Path(lei_records_path)
        self.relationship_records_path = Path(relationship_records_path)
        self.records_written = 0
        self.relationship_rows_written = 0

    def write(self, record: AggregatedRecord) -> None:
        primary = record_row(record)
        related = relationship_rows(record)

        # Relationships first: a primary row on disk implies its relationships are too
        if related:
            self._append(self.relationship_records_path, RELATIONSHIP_HEADERS, related)
        self._append(self.lei_records_path, LEI_RECORD_HEADERS, [primary])

        self.records_written += 1
        self.relationship_rows_written += len(related)
        logger.debug(
            "Wrote LEI %s with %d relationship row(s)",
            record.identifier,
            len(related),
            extra={"lei": record.identifier},
        )

    def _append(self, path: Path, headers: list[str], rows: Iterable[list[str]]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        needs_header = not path.exists() or path.stat().st_size == 0

        with open(path, "a", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            if needs_header:
                writer.writerow(headers)
            writer.writerows(rows)
