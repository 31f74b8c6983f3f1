"""
Failure tracking.

Two append-only logs: one line per LEI whose primary record could not be
fetched, and one line per relationship URL that could not be fetched.
Writing these logs never raises into the run.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


DEFAULT_FAILED_RECORDS_PATH = Path("output/failed_leis.csv")
DEFAULT_FAILED_URLS_PATH = Path("output/failed_urls.log")


def _single_line(text: str) -> str:
    return " ".join(text.splitlines()).strip()


@dataclass(frozen=True)
class FailureRecord:
    """One failure log entry."""

    subject: str
    reason: str
    timestamp: datetime = field(default_factory=datetime.now)

    def identifier_line(self) -> str:
        return f"{_single_line(self.subject)},{_single_line(self.reason)}\n"

    def url_line(self) -> str:
        stamp = self.timestamp.isoformat(timespec="seconds")
        return f"[{stamp}] Failed URL: {_single_line(self.subject)}, Reason: {_single_line(self.reason)}\n"


class FailureTracker:
    """Appends failure records to the identifier and URL failure logs.

    Appends are serialized with a lock so concurrent writers never interleave
    partial lines.
    """

    def __init__(
        self,
        failed_records_path: Path | str = DEFAULT_FAILED_RECORDS_PATH,
        failed_urls_path: Path | str = DEFAULT_FAILED_URLS_PATH,
    ):
        self.failed_records_path = Path(failed_records_path)
        self.failed_urls_path = Path(failed_urls_path)
        self._lock = threading.Lock()

        self.identifier_failures = 0
        self.url_failures = 0
        self.write_errors = 0

    def log_identifier_failure(self, identifier: str, reason: str) -> None:
        """Record an LEI whose primary record could not be fetched."""
        record = FailureRecord(subject=identifier, reason=reason)
        if self._append(self.failed_records_path, record.identifier_line()):
            self.identifier_failures += 1

    def log_url_failure(self, url: str, reason: str, timestamp: datetime | None = None) -> None:
        """Record a relationship URL that could not be fetched."""
        record = FailureRecord(subject=url, reason=reason, timestamp=timestamp or datetime.now())
        if self._append(self.failed_urls_path, record.url_line()):
            self.url_failures += 1

    def _append(self, path: Path, line: str) -> bool:
        """Append one line, reporting but never raising on I/O errors."""
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)
                return True
            except OSError as e:
                self.write_errors += 1
                logger.error("Could not write to file %s. Reason: %s", path, e)
                return False

    def reset_counters(self) -> None:
        self.identifier_failures = 0
        self.url_failures = 0
        self.write_errors = 0

    def stats(self) -> dict[str, int]:
        return {
            "identifier_failures": self.identifier_failures,
            "url_failures": self.url_failures,
            "write_errors": self.write_errors,
        }


# =============================================================================
# Reading failure logs back
# =============================================================================


_URL_LINE = re.compile(r"^\[(?P<stamp>[^\]]+)\] Failed URL: (?P<url>.*?), Reason: (?P<reason>.*)$")


def read_identifier_failures(path: Path | str) -> Iterator[FailureRecord]:
    """Parse an identifier failure log; a missing file yields nothing."""
    path = Path(path)
    if not path.exists():
        return

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.rstrip("\n")
            if not line.strip():
                continue
            subject, _, reason = line.partition(",")
            yield FailureRecord(subject=subject, reason=reason)


def read_url_failures(path: Path | str) -> Iterator[FailureRecord]:
    """Parse a URL failure log; lines in another format are skipped."""
    path = Path(path)
    if not path.exists():
        return

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            match = _URL_LINE.match(line.rstrip("\n"))
            if match is None:
                continue
            try:
                timestamp = datetime.fromisoformat(match.group("stamp"))
            except ValueError:
                logger.debug("Unparseable timestamp in %s: %s", path, match.group("stamp"))
                continue
            yield FailureRecord(
                subject=match.group("url"),
                reason=match.group("reason"),
                timestamp=timestamp,
            )
