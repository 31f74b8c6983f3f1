"""
Identifier source.

Reads LEIs from a delimited file whose first line is a header.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterator

DEFAULT_COLUMN = "lei_id"


class SourceError(Exception):
    """Identifier source cannot be read."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def read_identifiers(
    path: Path | str,
    column: str = DEFAULT_COLUMN,
    delimiter: str = ",",
) -> Iterator[str]:
    """Yield identifiers from a delimited file, in file order.

    The header names the column to read; when it does not contain ``column``
    the first column is used. Blank values are skipped and duplicates are
    kept.

    Args:
        path: Input file path
        column: Header name of the identifier column
        delimiter: Field delimiter

    Raises:
        SourceError: If the file is missing or unreadable
    """
    path = Path(path)
    if not path.exists():
        raise SourceError(f"Identifier file not found: {path}", path=path)

    return _iter_identifiers(path, column, delimiter)


def _iter_identifiers(path: Path, column: str, delimiter: str) -> Iterator[str]:
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f, delimiter=delimiter)
            header = next(reader, None)
            if header is None:
                return

            normalized = [name.strip().lower() for name in header]
            index = normalized.index(column.lower()) if column.lower() in normalized else 0

            for row in reader:
                if len(row) <= index:
                    continue
                value = row[index].strip()
                if value:
                    yield value
    except OSError as e:
        raise SourceError(f"Cannot read {path}: {e}", path=path) from e


def count_identifiers(path: Path | str, column: str = DEFAULT_COLUMN, delimiter: str = ",") -> int:
    """Count identifiers without keeping them in memory."""
    return sum(1 for _ in read_identifiers(path, column=column, delimiter=delimiter))
