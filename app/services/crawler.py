# app/services/crawler.py
import asyncio, logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.core.errors import FetchError, PersistError
from app.services.chunker import chunk_text, estimate_tokens
from app.services.embeddings import EmbeddingClient
from app.services.fetcher import PageFetcher
from app.services.fragments import Fragment, FragmentStore
from app.services.intents import IntentHook, run_intent_hook
from app.services.page_content import compute_content_hash, extract_page_content
from app.services.sources import WebsiteRepository

log = logging.getLogger(__name__)

@dataclass
class CrawlResult:
    pages_found: int = 0
    pages_crawled: int = 0
    pages_errored: int = 0

    def as_dict(self) -> dict:
        return {
            "pagesFound": self.pages_found,
            "pagesCrawled": self.pages_crawled,
            "pagesErrored": self.pages_errored,
        }


class CrawlOrchestrator:
    """
    Fetches, extracts and indexes a list of page URLs for one website source,
    one page at a time. A failing page is recorded and the batch moves on.
    """

    def __init__(
        self,
        repo: WebsiteRepository,
        store: FragmentStore,
        fetcher: PageFetcher,
        embedder: EmbeddingClient,
        intent_hook: Optional[IntentHook] = None,
        delay: float = 1.0,
        chunk_size: int = 500,
        chunk_overlap: int = 50,
    ):
        self.repo = repo
        self.store = store
        self.fetcher = fetcher
        self.embedder = embedder
        self.intent_hook = intent_hook
        self.delay = delay
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    async def crawl_website(
        self, source_id: str, chatbot_id: str, urls: Sequence[str], max_pages: Optional[int] = None,
    ) -> CrawlResult:
        targets: List[str] = list(urls)
        if max_pages is not None:
            targets = targets[:max_pages]

        result = CrawlResult(pages_found=len(targets))
        log.info(f"[CRAWL] source={source_id} starting, {len(targets)} pages")
        await self.repo.set_crawl_status(source_id, "crawling")

        for i, url in enumerate(targets):
            if i and self.delay > 0:
                await asyncio.sleep(self.delay)
            try:
                await self._crawl_page(source_id, chatbot_id, url)
                result.pages_crawled += 1
            except Exception as e:
                result.pages_errored += 1
                log.warning(f"[CRAWL] {url} failed: {e}")
                try:
                    await self.repo.upsert_error_page(
                        source_id=source_id, chatbot_id=chatbot_id, url=url, message=str(e),
                    )
                except PersistError as pe:
                    log.error(f"[CRAWL] could not record error for {url}: {pe}")

        # error when nothing at all could be crawled (an empty URL list included)
        if result.pages_crawled > 0:
            status, message = "completed", None
        else:
            status, message = "error", "No pages could be crawled"
        await self.repo.finish_crawl(
            source_id, status, page_count=result.pages_crawled, error_message=message,
        )
        log.info(f"[CRAWL] source={source_id} {status}: {result.as_dict()}")

        if result.pages_crawled > 0:
            await run_intent_hook(self.intent_hook, chatbot_id)
        return result

    async def _crawl_page(self, source_id: str, chatbot_id: str, url: str) -> int:
        res = await self.fetcher.fetch(url)
        if not res.ok:
            raise FetchError(url, status=res.status)

        page = extract_page_content(res.body, url)
        content_hash = compute_content_hash(page.content)
        page_id = await self.repo.upsert_crawled_page(
            source_id=source_id,
            chatbot_id=chatbot_id,
            url=url,
            title=page.title,
            description=page.description,
            content_hash=content_hash,
        )
        return await self.index_page(page_id, chatbot_id, url, page.title, page.content)

    async def index_page(self, page_id: str, chatbot_id: str, url: str, title: str, content: str) -> int:
        """
        Replace the page's fragments with freshly embedded chunks of `content`.
        Embeddings are computed before anything is deleted, so an embedding
        failure leaves the previous fragments in place.
        """
        chunks = chunk_text(content, self.chunk_size, self.chunk_overlap)
        fragments = []
        for idx, chunk in enumerate(chunks):
            vec = await self.embedder.embed(chunk)
            fragments.append(Fragment(
                chatbot_id=chatbot_id,
                content=chunk,
                embedding=vec,
                chunk_index=idx,
                token_count=estimate_tokens(chunk),
                source_type="website",
                page_id=page_id,
                page_url=url,
                page_title=title or None,
            ))

        await self.store.delete_fragments(page_id=page_id)
        await self.store.upsert_fragments(fragments)
        log.info(f"[CRAWL] indexed {url}: {len(fragments)} chunks")
        return len(fragments)
