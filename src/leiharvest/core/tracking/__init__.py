"""Failure tracking - identifier and URL failure logs."""

from .failures import FailureRecord, FailureTracker, read_identifier_failures, read_url_failures

__all__ = [
    "FailureRecord",
    "FailureTracker",
    "read_identifier_failures",
    "read_url_failures",
]
