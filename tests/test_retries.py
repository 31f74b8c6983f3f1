"""Tests for the retrying fetcher: retry bound, classification and recovery."""

import httpx
import pytest

from conftest import BASE_URL, record_url
from leiharvest.core.backends import HttpBackend, RequestSpec, SubjectKind, TransientNetworkError
from leiharvest.core.fetch import (
    FailureKind,
    RateLimitConfig,
    RateLimiter,
    RetryConfig,
    RetryingFetcher,
    innermost_reason,
)
from leiharvest.core.registry import LeiRecordResponse


class RecordingTracker:
    def __init__(self):
        self.identifiers: list[tuple[str, str]] = []
        self.urls: list[tuple[str, str]] = []

    def log_identifier_failure(self, identifier: str, reason: str) -> None:
        self.identifiers.append((identifier, reason))

    def log_url_failure(self, url: str, reason: str) -> None:
        self.urls.append((url, reason))


class CountingLimiter(RateLimiter):
    def __init__(self, clock):
        super().__init__(clock=clock, sleep=clock.sleep)
        self.acquires = 0

    async def acquire(self) -> float:
        self.acquires += 1
        return await super().acquire()


@pytest.fixture
def tracker():
    return RecordingTracker()


@pytest.fixture
def limiter(clock):
    return CountingLimiter(clock)


@pytest.fixture
def make_fetcher(registry, limiter, tracker, clock):
    def _make(config: RetryConfig | None = None) -> RetryingFetcher:
        backend = HttpBackend(transport=registry.transport())
        return RetryingFetcher(backend, limiter, tracker, config, sleep=clock.sleep)

    return _make


def identifier_request(lei: str) -> RequestSpec:
    return RequestSpec(url=record_url(lei), subject=lei, subject_kind=SubjectKind.IDENTIFIER)


class TestRetryBound:
    """Transient failures are retried at most max_attempts times."""

    @pytest.mark.asyncio
    async def test_transient_failure_uses_three_attempts_with_backoff(self, registry, make_fetcher, limiter, clock, tracker):
        url = f"{BASE_URL}/lei-records/X/direct-parent"
        registry.add(url, 503)
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(RequestSpec(url=url))

        assert not outcome.ok
        assert outcome.kind is FailureKind.TRANSIENT
        assert outcome.attempts == 3
        assert registry.count(url) == 3
        assert limiter.acquires == 3
        assert clock.sleeps == [1, 2]
        assert tracker.urls == [(url, "503 Service Unavailable")]
        assert tracker.identifiers == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, registry, make_fetcher, tracker):
        url = f"{BASE_URL}/lei-records/X/managing-lou"
        registry.add(url, 500, 502, {"data": None})
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(RequestSpec(url=url))

        assert outcome.ok
        assert outcome.payload == {"data": None}
        assert outcome.attempts == 3
        assert tracker.urls == []

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, registry, make_fetcher, tracker):
        url = f"{BASE_URL}/lei-records/X/lei-issuer"
        registry.add(url, httpx.ConnectError("connection refused"))
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(RequestSpec(url=url))

        assert outcome.kind is FailureKind.TRANSIENT
        assert registry.count(url) == 3
        assert tracker.urls == [(url, "connection refused")]

    @pytest.mark.asyncio
    async def test_configured_attempts_and_delays(self, registry, tracker, clock):
        url = f"{BASE_URL}/lei-records/X/direct-parent"
        registry.add(url, 504)
        # Fast limiter so only backoff delays reach the sleep recorder
        limiter = RateLimiter(RateLimitConfig(permits_per_second=50.0), clock=clock, sleep=clock.sleep)
        fetcher = RetryingFetcher(
            HttpBackend(transport=registry.transport()),
            limiter,
            tracker,
            RetryConfig(max_attempts=4, base_delay=0.5, multiplier=3, max_delay=2),
            sleep=clock.sleep,
        )

        outcome = await fetcher.fetch(RequestSpec(url=url))

        assert outcome.attempts == 4
        assert clock.sleeps == [0.5, 1.5, 2]


class TestPermanentFailures:
    """Client errors and decode errors are never retried."""

    @pytest.mark.asyncio
    async def test_not_found_is_one_attempt(self, registry, make_fetcher, limiter, clock, tracker):
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(identifier_request("MISSING"))

        assert outcome.kind is FailureKind.PERMANENT
        assert outcome.attempts == 1
        assert registry.count(record_url("MISSING")) == 1
        assert limiter.acquires == 1
        assert clock.sleeps == []
        assert tracker.identifiers == [("MISSING", "404 Not Found")]
        assert tracker.urls == []

    @pytest.mark.asyncio
    async def test_invalid_json_is_decode_failure(self, registry, make_fetcher, tracker):
        registry.add(record_url("X"), "<html>maintenance</html>")
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(identifier_request("X"))

        assert outcome.kind is FailureKind.DECODE
        assert registry.count(record_url("X")) == 1
        assert len(tracker.identifiers) == 1

    @pytest.mark.asyncio
    async def test_schema_mismatch_is_decode_failure(self, registry, make_fetcher, tracker):
        registry.add(record_url("X"), {"meta": {}, "data": {"type": "lei-records"}})
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(identifier_request("X"), decoder=LeiRecordResponse.model_validate)

        assert outcome.kind is FailureKind.DECODE
        assert outcome.attempts == 1
        assert "data.id" in outcome.reason
        assert tracker.identifiers[0][0] == "X"

    @pytest.mark.asyncio
    async def test_redirect_loop_is_one_attempt(self, registry, make_fetcher, limiter, clock, tracker):
        url = f"{BASE_URL}/lei-records/X/direct-parent"
        registry.add(url, lambda request: httpx.Response(302, headers={"Location": str(request.url)}))
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(RequestSpec(url=url))

        assert outcome.kind is FailureKind.PERMANENT
        assert outcome.attempts == 1
        assert limiter.acquires == 1
        assert clock.sleeps == []
        assert tracker.urls == [(url, "Exceeded maximum allowed redirects.")]
        assert tracker.identifiers == []


class TestRateLimitResponses:
    """429 responses are transient and honour Retry-After."""

    @pytest.mark.asyncio
    async def test_retry_after_stretches_backoff(self, registry, make_fetcher, clock):
        url = f"{BASE_URL}/lei-records/X/ultimate-parent"
        registry.add(
            url,
            lambda request: httpx.Response(429, headers={"Retry-After": "5"}),
            {"data": []},
        )
        fetcher = make_fetcher()

        outcome = await fetcher.fetch(RequestSpec(url=url))

        assert outcome.ok
        assert clock.sleeps == [5.0]

    @pytest.mark.asyncio
    async def test_retry_after_is_capped(self, registry, make_fetcher, clock):
        url = f"{BASE_URL}/lei-records/X/ultimate-parent"
        registry.add(
            url,
            lambda request: httpx.Response(429, headers={"Retry-After": "3600"}),
            {"data": []},
        )
        fetcher = make_fetcher(RetryConfig(max_delay=10))

        await fetcher.fetch(RequestSpec(url=url))

        assert clock.sleeps == [10]


class TestRecovery:
    """Failure recording never breaks the caller."""

    @pytest.mark.asyncio
    async def test_tracker_error_is_contained(self, registry, limiter, clock):
        class BrokenTracker(RecordingTracker):
            def log_identifier_failure(self, identifier, reason):
                raise RuntimeError("disk full")

        fetcher = RetryingFetcher(
            HttpBackend(transport=registry.transport()),
            limiter,
            BrokenTracker(),
            sleep=clock.sleep,
        )

        outcome = await fetcher.fetch(identifier_request("MISSING"))

        assert not outcome.ok
        assert outcome.subject == "MISSING"

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failure(self, registry, make_fetcher, tracker):
        url = f"{BASE_URL}/lei-records/X/direct-parent"
        registry.add(url, {"data": None})
        fetcher = make_fetcher()

        def explode(payload):
            raise RuntimeError("decoder bug")

        outcome = await fetcher.fetch(RequestSpec(url=url), decoder=explode)

        assert not outcome.ok
        assert outcome.kind is FailureKind.PERMANENT
        assert outcome.attempts == 1
        assert tracker.urls == [(url, "decoder bug")]
        assert tracker.identifiers == []

    def test_innermost_reason_walks_cause_chain(self):
        root = OSError("connection reset by peer")
        error = TransientNetworkError("Transport error", url="u", cause=root)

        assert innermost_reason(error) == "connection reset by peer"

    def test_innermost_reason_without_cause(self):
        assert innermost_reason(TransientNetworkError("502 Bad Gateway")) == "502 Bad Gateway"
