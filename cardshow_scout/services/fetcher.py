"""HTML fetcher for scraping sources.

Retrieves the raw HTML of one source URL with a browser-like user agent
and a hard timeout.  The fetcher never retries: a failed source is retried
by the next scheduled batch run, and the caller records the failure in the
source registry.
"""

from __future__ import annotations

import httpx
import structlog

from cardshow_scout.utils.errors import FetchError, FetchErrorKind

logger = structlog.get_logger(logger_name=__name__)

_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class HtmlFetcher:
    """Fetch raw HTML bytes via httpx.

    Raises :class:`FetchError` with ``kind`` set to ``TIMEOUT``,
    ``HTTP_STATUS`` (non-2xx, ``status_code`` populated) or ``NETWORK``.
    """

    def __init__(
        self,
        timeout_s: float = 15.0,
        user_agent: str = "Mozilla/5.0",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            headers={"User-Agent": user_agent, "Accept": _ACCEPT},
            follow_redirects=True,
        )

    async def fetch(self, url: str) -> bytes:
        """Return the body of *url*."""
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchError(
                kind=FetchErrorKind.TIMEOUT,
                message=f"Timeout fetching {url}",
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                kind=FetchErrorKind.HTTP_STATUS,
                message=f"HTTP {exc.response.status_code} for {url}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(
                kind=FetchErrorKind.NETWORK,
                message=f"HTTP error fetching {url}: {exc}",
            ) from exc

        logger.info("source_fetched", source_url=url, bytes=len(response.content))
        return response.content

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()
