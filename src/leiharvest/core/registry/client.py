"""
GLEIF registry client.

Builds request specs for primary records and related resources and runs them
through the retrying fetcher with the matching decoder.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from leiharvest.core.backends.base import RequestSpec, SubjectKind

from .models import LeiRecordResponse, decode_related_payload

if TYPE_CHECKING:
    from leiharvest.core.fetch.outcome import FetchOutcome
    from leiharvest.core.fetch.retries import RetryingFetcher


DEFAULT_BASE_URL = "https://api.gleif.org/api/v1"


class RegistryClient:
    """Typed access to the two registry endpoints the harvester uses."""

    def __init__(self, fetcher: RetryingFetcher, base_url: str = DEFAULT_BASE_URL):
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")

    def record_url(self, lei: str) -> str:
        return f"{self.base_url}/lei-records/{quote(lei, safe='')}"

    async def fetch_record(self, lei: str) -> FetchOutcome[LeiRecordResponse]:
        """Fetch the primary record for one LEI.

        Give-ups are recorded against the LEI in the identifier failure log.
        """
        request = RequestSpec(
            url=self.record_url(lei),
            subject=lei,
            subject_kind=SubjectKind.IDENTIFIER,
        )
        return await self.fetcher.fetch(request, decoder=LeiRecordResponse.model_validate)

    async def fetch_related(self, name: str, url: str) -> FetchOutcome[dict[str, Any]]:
        """Fetch one related resource document.

        Give-ups are recorded against the URL in the URL failure log.
        """
        request = RequestSpec(
            url=url,
            subject=url,
            subject_kind=SubjectKind.URL,
            relationship=name,
        )
        return await self.fetcher.fetch(request, decoder=decode_related_payload)
