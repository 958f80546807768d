# app/services/fetcher.py
import logging
from dataclasses import dataclass

import httpx

from app.core.errors import FetchError

log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "KBIngest-Bot/1.0 (Website Indexer)"

@dataclass
class FetchResult:
    url: str
    status: int
    content_type: str
    body: str

    @property
    def ok(self) -> bool:
        return self.status == 200

    @property
    def is_html(self) -> bool:
        return "text/html" in (self.content_type or "").lower()


def build_http_client(user_agent: str = DEFAULT_USER_AGENT, timeout: float = 20.0, **kwargs) -> httpx.AsyncClient:
    """AsyncClient carrying the crawler's fixed identity header."""
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent},
        timeout=timeout,
        follow_redirects=True,
        **kwargs,
    )


class PageFetcher:
    """
    One GET per call. The fetcher never sleeps: spacing requests out is the
    caller's job (see CrawlOrchestrator / SitemapResolver).
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def fetch(self, url: str) -> FetchResult:
        try:
            r = await self._client.get(url)
        except httpx.HTTPError as e:
            log.debug(f"[FETCH] {url} failed: {e!r}")
            raise FetchError(url, reason=str(e) or e.__class__.__name__) from e
        return FetchResult(
            url=url,
            status=r.status_code,
            content_type=r.headers.get("content-type", ""),
            body=r.text,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
