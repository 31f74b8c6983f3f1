"""
Shared pytest fixtures for leiharvest tests.

This module provides:
- A fake monotonic clock whose sleep advances time instantly
- A stub registry served through httpx.MockTransport
- Payload builders for primary records and related resources
- An AppConfig whose output files live in a temporary directory
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Union

import httpx
import pytest

from leiharvest.core.config import AppConfig
from leiharvest.core.logging import ROOT_LOGGER

BASE_URL = "https://registry.test/api/v1"


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Monotonic clock for the rate limiter and retry sleeps.

    ``sleep`` records each requested delay and advances time by it.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Registry payloads
# =============================================================================


def related_url(lei: str, name: str) -> str:
    return f"{BASE_URL}/lei-records/{lei}/{name}"


def record_url(lei: str) -> str:
    return f"{BASE_URL}/lei-records/{lei}"


def lei_record_payload(
    lei: str,
    *,
    relationships: list[str] | None = None,
    legal_name: str = "Example Holdings AG",
    bic: list[str] | None = None,
) -> dict[str, Any]:
    """Build a /lei-records/{id} response document."""
    links = {
        name: {"links": {"related": related_url(lei, name)}}
        for name in relationships or []
    }
    return {
        "meta": {"goldenCopy": {"publishDate": "2024-05-01T00:00:00Z"}},
        "data": {
            "type": "lei-records",
            "id": lei,
            "attributes": {
                "lei": lei,
                "entity": {
                    "legalName": {"name": legal_name, "language": "de"},
                    "registeredAs": "CHE-123.456.789",
                    "jurisdiction": "CH",
                    "status": "ACTIVE",
                },
                "registration": {
                    "initialRegistrationDate": "2014-02-10T00:00:00Z",
                    "lastUpdateDate": "2024-03-01T00:00:00Z",
                    "status": "ISSUED",
                    "nextRenewalDate": "2025-02-10T00:00:00Z",
                    "managingLou": "5299000J2N45DDNE4Y28",
                },
                "bic": bic,
            },
            "relationships": links,
            "links": {"self": record_url(lei)},
        },
    }


def related_payload(lei: str, name: str) -> dict[str, Any]:
    """Build a related-resource document with a single object."""
    return {
        "data": {
            "type": "lei-records" if name != "field-modifications" else "field-modifications",
            "id": f"{name}-of-{lei}",
            "attributes": {"name": name, "note": "first line\nsecond line"},
        }
    }


# =============================================================================
# Stub registry
# =============================================================================


# dict -> 200 JSON, int -> that status, str -> 200 raw body,
# Exception -> raised by the transport, callable -> returns the response
Canned = Union[dict, int, str, Exception, Callable[[httpx.Request], httpx.Response]]


class RegistryStub:
    """Serves canned responses per URL; the last response for a URL repeats."""

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or (lambda: 0.0)
        self.routes: dict[str, list[Canned]] = {}
        self.calls: list[tuple[str, float]] = []

    def add(self, url: str, *responses: Canned) -> "RegistryStub":
        self.routes[url] = list(responses)
        return self

    def add_record(self, lei: str, *, relationships: list[str] | None = None, **kwargs: Any) -> "RegistryStub":
        self.add(record_url(lei), lei_record_payload(lei, relationships=relationships, **kwargs))
        for name in relationships or []:
            self.add(related_url(lei, name), related_payload(lei, name))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append((url, self._clock()))

        queue = self.routes.get(url)
        if not queue:
            return httpx.Response(404, json={"errors": [{"status": "404", "title": "Not Found"}]})

        item = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(item, Exception):
            raise item
        if isinstance(item, int):
            return httpx.Response(item, json={"errors": [{"status": str(item)}]})
        if isinstance(item, str):
            return httpx.Response(200, text=item)
        if isinstance(item, dict):
            return httpx.Response(200, json=item)
        return item(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]

    def count(self, url: str) -> int:
        return sum(1 for called, _ in self.calls if called == url)

    def call_times(self) -> list[float]:
        return [at for _, at in self.calls]


@pytest.fixture
def registry(clock: FakeClock) -> RegistryStub:
    return RegistryStub(clock)


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Default configuration with every file under tmp_path."""
    return AppConfig.model_validate({
        "api": {"base_url": BASE_URL},
        "input": {"path": str(tmp_path / "input" / "lei_ids.csv")},
        "output": {
            "lei_records": str(tmp_path / "output" / "lei_records.csv"),
            "relationship_records": str(tmp_path / "output" / "relationship_records.csv"),
            "failed_records": str(tmp_path / "output" / "failed_leis.csv"),
            "failed_urls": str(tmp_path / "output" / "failed_urls.log"),
        },
        "logging": {"file": None, "rich_console": False},
    })


@pytest.fixture
def reset_logging():
    """Drop handlers the CLI installs on the package logger."""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
