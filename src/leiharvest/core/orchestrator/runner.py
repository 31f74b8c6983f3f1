"""
Chunked runner.

Drives identifiers through the record processor in fixed-size groups,
flushes completed records to the sink once per group and enforces the
job-wide skip budget.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from leiharvest.core.logging import ContextualLogger, get_contextual_logger

if TYPE_CHECKING:
    from leiharvest.core.processing.models import AggregatedRecord
    from leiharvest.core.processing.processor import RecordProcessor
    from leiharvest.core.tracking.failures import FailureTracker
    from leiharvest.persistence.csv_sink import RecordSink


DEFAULT_CHUNK_SIZE = 2
DEFAULT_SKIP_LIMIT = 100


class SkipBudgetExceeded(Exception):
    """More identifiers were skipped than the run tolerates."""

    def __init__(self, skipped: int, limit: int):
        self.skipped = skipped
        self.limit = limit
        super().__init__(f"Skip limit exceeded: {skipped} skipped, limit is {limit}")


def new_run_id() -> str:
    """Run key derived from the current UTC time."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y%m%dT%H%M%S") + f"{now.microsecond // 1000:03d}Z"


@dataclass
class RunSummary:
    """Statistics for one run."""

    run_id: str
    processed: int = 0
    written: int = 0
    skipped: int = 0
    aborted: bool = False
    stopped: bool = False

    identifier_failures: int = 0
    url_failures: int = 0

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.aborted:
            return "FAILED"
        if self.stopped:
            return "STOPPED"
        return "COMPLETED"

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": self.run_id,
            "status": self.status,
            "processed": self.processed,
            "written": self.written,
            "skipped": self.skipped,
            "aborted": self.aborted,
            "stopped": self.stopped,
            "identifier_failures": self.identifier_failures,
            "url_failures": self.url_failures,
            "duration_seconds": self.duration_seconds,
        }


def _chunked(items: Iterable[str], size: int) -> Iterator[list[str]]:
    iterator = iter(items)
    while True:
        chunk = list(itertools.islice(iterator, size))
        if not chunk:
            return
        yield chunk


class ChunkedRunner:
    """Runs identifiers through the processor with a skip budget.

    Grouping only batches sink writes; a group has no transactional meaning.
    Completed records buffered in the current group are flushed even when
    the skip budget aborts the run partway through it.
    """

    def __init__(
        self,
        processor: RecordProcessor,
        sink: RecordSink,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        skip_limit: int = DEFAULT_SKIP_LIMIT,
        failure_tracker: FailureTracker | None = None,
    ):
        """Initialize the runner.

        Args:
            processor: Per-identifier processor
            sink: Destination for completed records
            chunk_size: Identifiers per sink flush
            skip_limit: Skips tolerated before the run aborts
            failure_tracker: Receives identifiers lost to unexpected errors
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if skip_limit < 0:
            raise ValueError("skip_limit must not be negative")

        self.processor = processor
        self.sink = sink
        self.chunk_size = chunk_size
        self.skip_limit = skip_limit
        self.failure_tracker = failure_tracker
        self._stop_requested = False

    def request_stop(self) -> None:
        """Stop feeding identifiers after the group in progress."""
        self._stop_requested = True

    async def run(self, identifiers: Iterable[str], run_id: str | None = None) -> RunSummary:
        """Process all identifiers.

        Args:
            identifiers: Ordered identifiers; consumed lazily, one group at a time
            run_id: Key for this run (generated when omitted)

        Returns:
            RunSummary; ``aborted`` is set when the skip budget was exceeded
        """
        summary = RunSummary(run_id=run_id or new_run_id())
        log = get_contextual_logger("runner", run_id=summary.run_id)
        self._stop_requested = False

        log.info(
            "Run started (chunk size %d, skip limit %d)",
            self.chunk_size,
            self.skip_limit,
        )

        try:
            for number, chunk in enumerate(_chunked(identifiers, self.chunk_size), start=1):
                if self._stop_requested:
                    summary.stopped = True
                    log.warning("Stop requested, not starting chunk %d", number)
                    break

                await self._run_chunk(chunk, summary, log)
                log.info(
                    "Chunk %d done: %d processed, %d written, %d skipped",
                    number,
                    summary.processed,
                    summary.written,
                    summary.skipped,
                )
        except SkipBudgetExceeded as e:
            summary.aborted = True
            summary.errors.append(str(e))
            log.error("Run aborted: %s", e)
        finally:
            summary.finished_at = datetime.now(timezone.utc)

        log.info(
            "Run %s: %d processed, %d written, %d skipped in %.1fs",
            summary.status,
            summary.processed,
            summary.written,
            summary.skipped,
            summary.duration_seconds or 0.0,
        )
        return summary

    async def _run_chunk(self, chunk: list[str], summary: RunSummary, log: ContextualLogger) -> None:
        buffer: list[AggregatedRecord] = []

        try:
            for identifier in chunk:
                summary.processed += 1
                try:
                    result = await self.processor.process(identifier)
                except Exception as e:
                    log.exception("Unexpected error processing LEI %s", identifier, extra={"lei": identifier})
                    self._record_unexpected(identifier, e, summary)
                    self._record_skip(summary)
                    continue

                if result.complete and result.record is not None:
                    buffer.append(result.record)
                else:
                    self._record_skip(summary)
        finally:
            self._flush(buffer, summary, log)

    def _flush(self, buffer: list[AggregatedRecord], summary: RunSummary, log: ContextualLogger) -> None:
        for record in buffer:
            try:
                self.sink.write(record)
            except Exception as e:
                log.exception(
                    "Failed to write LEI %s",
                    record.identifier,
                    extra={"lei": record.identifier},
                )
                self._record_unexpected(record.identifier, e, summary)
                self._record_skip(summary)
                continue
            summary.written += 1

    def _record_unexpected(self, identifier: str, error: Exception, summary: RunSummary) -> None:
        reason = str(error) or type(error).__name__
        summary.errors.append(f"{identifier}: {reason}")
        if self.failure_tracker is not None:
            self.failure_tracker.log_identifier_failure(identifier, reason)

    def _record_skip(self, summary: RunSummary) -> None:
        summary.skipped += 1
        if summary.skipped > self.skip_limit:
            raise SkipBudgetExceeded(summary.skipped, self.skip_limit)
