# app/services/refresh.py
import asyncio, logging
from dataclasses import dataclass

from app.core.errors import FetchError, PersistError, SourceNotFound
from app.services.crawler import CrawlOrchestrator
from app.services.fetcher import PageFetcher
from app.services.page_content import compute_content_hash, extract_page_content
from app.services.sources import WebsiteRepository

log = logging.getLogger(__name__)

@dataclass
class RefreshResult:
    pages_updated: int = 0
    pages_skipped: int = 0
    pages_errored: int = 0
    total_pages: int = 0

    def as_dict(self) -> dict:
        return {
            "pagesUpdated": self.pages_updated,
            "pagesSkipped": self.pages_skipped,
            "pagesErrored": self.pages_errored,
            "totalPages": self.total_pages,
        }


class RefreshEngine:
    """Re-fetches every known page of a source and re-indexes only the ones whose text changed."""

    def __init__(
        self,
        repo: WebsiteRepository,
        orchestrator: CrawlOrchestrator,
        fetcher: PageFetcher,
        delay: float = 1.0,
    ):
        self.repo = repo
        self.orchestrator = orchestrator
        self.fetcher = fetcher
        self.delay = delay

    async def refresh_website(self, source_id: str) -> RefreshResult:
        source = await self.repo.get_source(source_id)
        if not source:
            raise SourceNotFound(source_id)

        chatbot_id = str(source["chatbot_id"])
        pages = await self.repo.list_pages(source_id)
        result = RefreshResult(total_pages=len(pages))

        log.info(f"[REFRESH] source={source_id} checking {len(pages)} pages")
        await self.repo.set_crawl_status(source_id, "crawling")

        for i, page in enumerate(pages):
            if i and self.delay > 0:
                await asyncio.sleep(self.delay)
            page_id, url = str(page["id"]), page["url"]
            try:
                res = await self.fetcher.fetch(url)
                if not res.ok:
                    raise FetchError(url, status=res.status)
                content = extract_page_content(res.body, url)
                new_hash = compute_content_hash(content.content)

                # pages left in error are re-indexed even when their text is unchanged
                if page.get("content_hash") == new_hash and page.get("status") == "crawled":
                    await self.repo.touch_page(page_id)
                    result.pages_skipped += 1
                    continue

                log.info(f"[REFRESH] content changed for {url}, re-indexing")
                await self.orchestrator.index_page(page_id, chatbot_id, url, content.title, content.content)
                # the hash moves only once the new fragments are stored
                await self.repo.update_page_content(
                    page_id,
                    title=content.title,
                    description=content.description,
                    content_hash=new_hash,
                )
                result.pages_updated += 1
            except Exception as e:
                result.pages_errored += 1
                log.warning(f"[REFRESH] {url} failed: {e}")
                try:
                    await self.repo.mark_page_error(page_id, str(e) or "Refresh failed")
                except PersistError as pe:
                    log.error(f"[REFRESH] could not record error for {url}: {pe}")

        # a refresh always ends completed, whatever the page outcomes
        await self.repo.finish_crawl(source_id, "completed")
        log.info(f"[REFRESH] source={source_id} done: {result.as_dict()}")
        return result
