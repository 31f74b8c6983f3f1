"""
Backend base classes and data structures.

Defines the request/response contract for registry backends and the
error taxonomy used to classify failed calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SubjectKind(str, Enum):
    """What a request is about, used to route failure records."""

    IDENTIFIER = "identifier"
    URL = "url"


@dataclass
class RequestSpec:
    """Specification for a registry API request."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)

    # Failure routing: the LEI for primary records, the URL for relationships
    subject: str | None = None
    subject_kind: SubjectKind = SubjectKind.URL

    # Metadata for logging
    relationship: str | None = None

    @property
    def failure_subject(self) -> str:
        """Subject written to the failure log."""
        return self.subject or self.url


@dataclass
class FetchResult:
    """Result of a successful fetch: a decoded JSON document."""

    url: str
    final_url: str  # After redirects
    status_code: int
    payload: Any
    headers: dict[str, str]

    # Timing
    elapsed_ms: float
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        """Check if request was successful (2xx status)."""
        return 200 <= self.status_code < 300


class Backend(ABC):
    """Abstract base class for registry backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""
        pass

    @abstractmethod
    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Perform exactly one outbound call.

        Args:
            request: Request specification

        Returns:
            FetchResult with the decoded JSON body

        Raises:
            TransientNetworkError: Server-side or network failure, worth retrying
            PermanentClientError: Client-side failure, never retried
            DecodeError: Response body is not valid JSON
        """
        pass

    async def close(self) -> None:
        """Clean up backend resources."""
        pass

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class FetchError(BackendError):
    """Error during a fetch operation."""
    pass


class TransientNetworkError(FetchError):
    """Server-side (5xx) or network/timeout failure. Retried."""
    pass


class RateLimitError(TransientNetworkError):
    """Rate limit hit (429)."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, url, status_code=429)
        self.retry_after = retry_after


class PermanentClientError(FetchError):
    """Client-side (4xx) or unusable-request failure. Never retried."""
    pass


class DecodeError(FetchError):
    """Response received but not parseable into the expected shape."""
    pass
