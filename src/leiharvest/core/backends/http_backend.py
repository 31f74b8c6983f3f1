"""
HTTP Backend implementation using httpx.

Performs exactly one GET per call and classifies the outcome:
- 2xx with a JSON body -> FetchResult
- 5xx, 429, timeouts and transport errors -> TransientNetworkError
- any other status -> PermanentClientError
- unparseable body -> DecodeError

Retrying is not done here; see ``leiharvest.core.fetch.retries``.
"""

from __future__ import annotations

import time
from typing import Iterable

import httpx

from leiharvest import __app_name__, __version__

from .base import (
    Backend,
    DecodeError,
    FetchResult,
    PermanentClientError,
    RateLimitError,
    RequestSpec,
    TransientNetworkError,
)


DEFAULT_USER_AGENT = f"{__app_name__}/{__version__}"

# Status codes that should trigger retry (plus every 5xx)
RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class HttpBackend(Backend):
    """HTTP backend using httpx for async requests.

    Features:
    - Persistent connection pooling
    - Explicit connect/read/write/pool timeouts
    - Status classification into transient and permanent failures
    """

    def __init__(
        self,
        connect_timeout: float = 10.0,
        read_timeout: float = 30.0,
        write_timeout: float = 10.0,
        pool_timeout: float = 10.0,
        user_agent: str | None = None,
        default_headers: dict[str, str] | None = None,
        retry_status_codes: Iterable[int] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HTTP backend.

        Args:
            connect_timeout: Seconds to establish a connection
            read_timeout: Seconds to wait for response data
            write_timeout: Seconds to send request data
            pool_timeout: Seconds to wait for a pooled connection
            user_agent: Custom user agent
            default_headers: Default headers for all requests
            retry_status_codes: Status codes classified as transient
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.timeout = httpx.Timeout(
            read_timeout,
            connect=connect_timeout,
            write=write_timeout,
            pool=pool_timeout,
        )
        self.retry_status_codes = frozenset(
            RETRY_STATUS_CODES if retry_status_codes is None else retry_status_codes
        )
        self.default_headers = {
            "User-Agent": user_agent or DEFAULT_USER_AGENT,
            "Accept": "application/vnd.api+json, application/json;q=0.9",
            **(default_headers or {}),
        }
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=self.default_headers,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=5,
                    max_keepalive_connections=2,
                ),
            )
        return self._client

    def _is_transient_status(self, status_code: int) -> bool:
        return status_code >= 500 or status_code in self.retry_status_codes

    def _check_status(self, response: httpx.Response) -> None:
        """Raise the classified error for a non-2xx response."""
        if response.is_success:
            return

        message = f"{response.status_code} {response.reason_phrase}".strip()
        url = str(response.request.url)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            retry_seconds = None
            if retry_after:
                try:
                    retry_seconds = float(retry_after)
                except ValueError:
                    pass
            raise RateLimitError(message, url=url, retry_after=retry_seconds)

        if self._is_transient_status(response.status_code):
            raise TransientNetworkError(message, url=url, status_code=response.status_code)

        raise PermanentClientError(message, url=url, status_code=response.status_code)

    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Fetch a URL and decode its JSON body.

        Args:
            request: Request specification

        Returns:
            FetchResult with the decoded payload
        """
        if request.method.upper() != "GET":
            raise PermanentClientError(f"Unsupported method: {request.method}", url=request.url)

        client = await self._ensure_client()
        start = time.perf_counter()

        try:
            response = await client.get(
                request.url,
                headers=request.headers or None,
                params=request.params or None,
            )
        except httpx.TimeoutException as e:
            raise TransientNetworkError(
                f"Timeout: {str(e) or type(e).__name__}",
                url=request.url,
                cause=e,
            ) from e
        except (httpx.UnsupportedProtocol, httpx.TooManyRedirects, httpx.InvalidURL) as e:
            # Same URL, same answer: not worth another attempt
            raise PermanentClientError(
                f"Request error: {str(e) or type(e).__name__}",
                url=request.url,
                cause=e,
            ) from e
        except httpx.DecodingError as e:
            raise DecodeError(
                f"Response body could not be decoded: {str(e) or type(e).__name__}",
                url=request.url,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise TransientNetworkError(
                f"Transport error: {str(e) or type(e).__name__}",
                url=request.url,
                cause=e,
            ) from e

        elapsed_ms = (time.perf_counter() - start) * 1000

        self._check_status(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(
                f"Response is not valid JSON: {e}",
                url=request.url,
                status_code=response.status_code,
                cause=e,
            ) from e

        return FetchResult(
            url=request.url,
            final_url=str(response.url),
            status_code=response.status_code,
            payload=payload,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
