"""
Harvest pipeline assembly.

Builds one wired set of components (backend, shared rate limiter, retrying
fetcher, registry client, processor, sinks and runner) from an AppConfig.
Each run gets its own pipeline, and every outbound call made during that
run goes through the same rate limiter.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from leiharvest.core.backends import Backend, HttpBackend
from leiharvest.core.config import AppConfig
from leiharvest.core.fetch import RateLimitConfig, RateLimiter, RetryConfig, RetryingFetcher
from leiharvest.core.logging import get_contextual_logger
from leiharvest.core.processing import RecordProcessor, RelationshipAggregator
from leiharvest.core.registry import RegistryClient
from leiharvest.core.tracking import FailureTracker
from leiharvest.persistence import CsvRecordSink, RecordSink, read_identifiers

from .runner import ChunkedRunner, RunSummary, new_run_id


class HarvestPipeline:
    """A fully wired harvester for one run.

    Usage:
        async with HarvestPipeline.from_config(config) as pipeline:
            summary = await pipeline.run_once(identifiers)
    """

    def __init__(
        self,
        config: AppConfig,
        backend: Backend,
        rate_limiter: RateLimiter,
        failure_tracker: FailureTracker,
        sink: RecordSink,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.backend = backend
        self.rate_limiter = rate_limiter
        self.failure_tracker = failure_tracker
        self.sink = sink

        self.fetcher = RetryingFetcher(
            backend,
            rate_limiter,
            failure_tracker,
            RetryConfig(
                max_attempts=config.retry.max_attempts,
                base_delay=config.retry.base_delay_seconds,
                max_delay=config.retry.max_delay_seconds,
                multiplier=config.retry.multiplier,
            ),
            sleep=sleep,
        )
        self.client = RegistryClient(self.fetcher, base_url=config.api.base_url)
        self.aggregator = RelationshipAggregator(self.client)
        self.processor = RecordProcessor(self.client, self.aggregator)
        self.runner = ChunkedRunner(
            self.processor,
            sink,
            chunk_size=config.job.chunk_size,
            skip_limit=config.job.skip_limit,
            failure_tracker=failure_tracker,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        backend: Backend | None = None,
        sink: RecordSink | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "HarvestPipeline":
        """Build a pipeline from configuration.

        Args:
            config: Application configuration
            backend: Backend to use instead of an HttpBackend
            sink: Record sink to use instead of the CSV files
            clock: Monotonic clock for the rate limiter
            sleep: Coroutine used for rate-limit waits and retry backoff
        """
        if backend is None:
            backend = HttpBackend(
                connect_timeout=config.api.connect_timeout_seconds,
                read_timeout=config.api.read_timeout_seconds,
                user_agent=config.api.user_agent,
                retry_status_codes=config.retry.retry_status_codes,
            )

        if sink is None:
            sink = CsvRecordSink(
                config.output.lei_records,
                config.output.relationship_records,
            )

        rate_limiter = RateLimiter(
            RateLimitConfig(permits_per_second=config.rate_limit.permits_per_second),
            clock=clock,
            sleep=sleep,
        )
        failure_tracker = FailureTracker(
            config.output.failed_records,
            config.output.failed_urls,
        )

        return cls(config, backend, rate_limiter, failure_tracker, sink, sleep=sleep)

    def request_stop(self) -> None:
        self.runner.request_stop()

    async def run_once(
        self,
        identifiers: Iterable[str],
        *,
        run_id: str | None = None,
        run_type: str = "manual",
    ) -> RunSummary:
        """Process every identifier once.

        Args:
            identifiers: Ordered identifier source
            run_id: Key for this run (UTC timestamp when omitted)
            run_type: "manual" or "scheduled", for logging only

        Returns:
            RunSummary for the run
        """
        run_id = run_id or new_run_id()
        log = get_contextual_logger("pipeline", run_id=run_id)
        log.info("Starting %s run against %s", run_type, self.config.api.base_url)

        self.failure_tracker.reset_counters()
        summary = await self.runner.run(identifiers, run_id=run_id)

        summary.identifier_failures = self.failure_tracker.identifier_failures
        summary.url_failures = self.failure_tracker.url_failures

        limiter_stats = self.rate_limiter.stats()
        log.info(
            "Run finished with status %s (%d calls, %.1fs spent waiting on rate limit)",
            summary.status,
            limiter_stats["acquired"],
            limiter_stats["total_wait_seconds"],
        )
        return summary

    async def close(self) -> None:
        self.sink.close()
        await self.backend.close()

    async def __aenter__(self) -> "HarvestPipeline":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


async def run_once(
    config: AppConfig,
    identifiers: Iterable[str] | None = None,
    *,
    input_path: Path | str | None = None,
    run_type: str = "manual",
    backend: Backend | None = None,
) -> RunSummary:
    """Convenience function for one run from configuration.

    Identifiers come from ``identifiers`` when given, otherwise from
    ``input_path`` (default: the configured input file).

    Raises:
        SourceError: If the identifier file is missing or unreadable
    """
    if identifiers is None:
        identifiers = read_identifiers(
            input_path or config.input.path,
            column=config.input.column,
            delimiter=config.input.delimiter,
        )

    async with HarvestPipeline.from_config(config, backend=backend) as pipeline:
        return await pipeline.run_once(identifiers, run_type=run_type)
