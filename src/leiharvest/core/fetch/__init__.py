"""Fetch utilities - throttling, retries, tagged outcomes."""

from .outcome import Failure, FailureKind, FetchOutcome, Success
from .retries import RetryConfig, RetryingFetcher, classify_failure, innermost_reason
from .throttling import RateLimitConfig, RateLimiter

__all__ = [
    "Failure",
    "FailureKind",
    "FetchOutcome",
    "Success",
    "RateLimitConfig",
    "RateLimiter",
    "RetryConfig",
    "RetryingFetcher",
    "classify_failure",
    "innermost_reason",
]
