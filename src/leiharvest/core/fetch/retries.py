"""
Retrying fetcher built on tenacity.

One call to ``RetryingFetcher.fetch`` performs up to ``max_attempts`` outbound
calls, acquiring a rate-limit permit before each one. Transient failures are
retried with exponential backoff; permanent and decode failures stop at once.
When the fetcher gives up it records exactly one failure entry and returns a
``Failure`` outcome instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, TypeVar

from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from leiharvest.core.backends.base import (
    DecodeError,
    FetchError,
    RateLimitError,
    RequestSpec,
    SubjectKind,
    TransientNetworkError,
)

from .outcome import Failure, FailureKind, FetchOutcome, Success

if TYPE_CHECKING:
    from leiharvest.core.backends.base import Backend

    from .throttling import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1  # seconds
DEFAULT_MAX_DELAY = 30  # seconds
DEFAULT_MULTIPLIER = 2


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        multiplier: float = DEFAULT_MULTIPLIER,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts, first call included
            base_delay: Delay before the first retry in seconds
            max_delay: Upper bound for any single delay in seconds
            multiplier: Growth factor applied to the delay per retry
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier


class FailureSink(Protocol):
    """Where a fetcher reports the calls it gave up on."""

    def log_identifier_failure(self, identifier: str, reason: str) -> None: ...

    def log_url_failure(self, url: str, reason: str) -> None: ...


def innermost_reason(error: BaseException) -> str:
    """Get the message of the deepest error in the cause chain."""
    reason = str(error) or type(error).__name__
    current: BaseException | None = getattr(error, "cause", None)
    depth = 0

    while current is not None and depth < 10:
        message = str(current)
        if message:
            reason = message
        current = getattr(current, "cause", None) or current.__cause__
        depth += 1

    return reason


def classify_failure(error: BaseException) -> FailureKind:
    """Map an error onto a failure kind."""
    if isinstance(error, TransientNetworkError):
        return FailureKind.TRANSIENT
    if isinstance(error, DecodeError):
        return FailureKind.DECODE
    return FailureKind.PERMANENT


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"Unexpected response shape at {location}: {first['msg']}"


class RetryingFetcher:
    """Performs outbound calls with rate limiting, retries and recovery.

    Usage:
        fetcher = RetryingFetcher(backend, rate_limiter, tracker)
        outcome = await fetcher.fetch(spec, decoder=LeiRecordResponse.model_validate)
        if outcome.ok:
            use(outcome.payload)
    """

    def __init__(
        self,
        backend: Backend,
        rate_limiter: RateLimiter,
        failure_tracker: FailureSink,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.rate_limiter = rate_limiter
        self.failure_tracker = failure_tracker
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._backoff = wait_exponential(
            multiplier=self.config.base_delay,
            exp_base=self.config.multiplier,
            max=self.config.max_delay,
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        """Exponential backoff, stretched to honour a Retry-After header."""
        delay = self._backoff(retry_state)

        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, min(error.retry_after, self.config.max_delay))

        return delay

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TransientNetworkError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    async def _attempt(
        self,
        request: RequestSpec,
        decoder: Callable[[Any], T] | None,
        attempt_number: int,
    ) -> T:
        await self.rate_limiter.acquire()
        logger.debug(
            "Fetching %s (attempt %d/%d)",
            request.url,
            attempt_number,
            self.config.max_attempts,
            extra={"url": request.url, "attempt": attempt_number},
        )

        result = await self.backend.fetch(request)

        if decoder is None:
            return result.payload

        try:
            return decoder(result.payload)
        except ValidationError as e:
            raise DecodeError(
                _describe_validation_error(e),
                url=request.url,
                status_code=result.status_code,
            ) from e
        except (ValueError, TypeError, KeyError) as e:
            raise DecodeError(
                f"Unexpected response shape: {e}",
                url=request.url,
                status_code=result.status_code,
            ) from e

    async def fetch(
        self,
        request: RequestSpec,
        decoder: Callable[[Any], T] | None = None,
    ) -> FetchOutcome[T]:
        """Fetch and decode one resource.

        Args:
            request: Request specification; its subject decides which
                failure stream a give-up is written to
            decoder: Turns the JSON payload into the expected shape

        Returns:
            Success with the decoded payload, or Failure with the innermost
            error message once retries are exhausted or the error is permanent
        """
        attempts = 0
        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    payload = await self._attempt(request, decoder, attempts)
                    return Success(payload, attempts=attempts)
        except FetchError as e:
            return self._recover(request, e, attempts)
        except Exception as e:
            logger.exception("Unexpected error fetching %s", request.url)
            return self._recover(request, e, attempts)

        raise RuntimeError("retry loop ended without an outcome")

    def _recover(self, request: RequestSpec, error: Exception, attempts: int) -> Failure:
        """Convert a final error into a tracked Failure outcome."""
        reason = innermost_reason(error)
        subject = request.failure_subject

        if request.subject_kind is SubjectKind.IDENTIFIER:
            logger.error(
                "All retry attempts failed for LEI %s after %d attempt(s): %s",
                subject,
                attempts,
                reason,
                extra={"lei": subject, "url": request.url},
            )
            log_failure = self.failure_tracker.log_identifier_failure
        else:
            logger.error(
                "All retry attempts failed for relationship URL %s after %d attempt(s): %s",
                subject,
                attempts,
                reason,
                extra={"url": request.url},
            )
            log_failure = self.failure_tracker.log_url_failure

        try:
            log_failure(subject, reason)
        except Exception:
            logger.exception("Could not record failure for %s", subject)

        return Failure(
            reason=reason,
            kind=classify_failure(error),
            subject=subject,
            attempts=attempts,
        )
