"""Outbound client for the upstream use-case API.

One ``httpx.AsyncClient`` is shared per app and closed on shutdown. Each proxy
call is a single GET with no retries; any failure surfaces as ``UpstreamError``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from usecase_catalog.config import UpstreamConfig
from usecase_catalog.errors import UpstreamError

logger = logging.getLogger(__name__)

USE_CASES_PATH = "/use-cases"
DEFAULT_PAGE = "1"
DEFAULT_PAGE_SIZE = "20"


def _clamp(raw: str, *, low: int, high: int | None) -> str:
    """Clamp integer-looking values; anything else is forwarded untouched."""
    try:
        value = int(raw)
    except ValueError:
        return raw
    if value < low:
        value = low
    if high is not None and value > high:
        value = high
    return str(value)


def pagination_params(
    page: str | None, page_size: str | None, *, max_page_size: int | None = None
) -> dict[str, str]:
    """Build the upstream query from raw query-string values.

    Missing or empty values fall back to page 1 / page size 20. Values are passed
    through verbatim unless ``max_page_size`` enables clamping.
    """

    page = page or DEFAULT_PAGE
    page_size = page_size or DEFAULT_PAGE_SIZE
    if max_page_size is not None:
        page = _clamp(page, low=1, high=None)
        page_size = _clamp(page_size, low=1, high=max_page_size)
    return {"page": page, "page_size": page_size}


class UpstreamClient:
    def __init__(
        self,
        config: UpstreamConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            headers={"accept": "application/json"},
            timeout=config.timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_page(self, page: str | None, page_size: str | None) -> Any:
        """Fetch one page and return the decoded JSON body unchanged."""

        params = pagination_params(page, page_size, max_page_size=self.config.max_page_size)

        try:
            response = await self._client.get(USE_CASES_PATH, params=params)
        except httpx.TimeoutException as exc:
            logger.warning("Upstream request timed out: %s", exc)
            raise UpstreamError(message="Upstream request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Upstream request failed: %s", exc)
            raise UpstreamError(message=f"Upstream request failed: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "Upstream returned %s for page=%s page_size=%s",
                response.status_code,
                params["page"],
                params["page_size"],
            )
            raise UpstreamError(status=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Upstream returned a non-JSON body: %s", exc)
            raise UpstreamError(message="Upstream returned invalid JSON") from exc
