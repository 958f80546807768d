# app/services/pipeline.py
import logging
from typing import Callable, List, Optional

from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.errors import PersistError, SourceNotFound
from app.services.crawler import CrawlOrchestrator, CrawlResult
from app.services.documents import DocumentProcessor, DocumentResult
from app.services.embeddings import EmbeddingClient
from app.services.fetcher import PageFetcher, build_http_client
from app.services.fragments import FragmentStore, SearchHit
from app.services.intents import IntentDetector, IntentHook
from app.services.refresh import RefreshEngine, RefreshResult
from app.services.sitemap import SitemapResolver, parse_sitemap
from app.services.sources import DocumentRepository, WebsiteRepository
from app.services.storage import BlobStorage, build_supabase_client

log = logging.getLogger(__name__)

NO_URLS = "No URLs found to crawl"


class IngestionPipeline:
    """
    Long-lived collaborators (embedding client, HTTP client, storage, intent hook)
    built once at startup; every operation opens its own DB session, so it can
    run as a background task after the request session is gone.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        embedder: EmbeddingClient,
        fetcher: PageFetcher,
        storage: BlobStorage,
        intent_hook: Optional[IntentHook] = None,
        *,
        crawl_delay: float = 1.0,
        chunk_size: int = 500,
        chunk_overlap: int = 50,
        sitemap_max_depth: int = 2,
        crawl_max_depth: int = 3,
    ):
        self.session_factory = session_factory
        self.embedder = embedder
        self.fetcher = fetcher
        self.storage = storage
        self.intent_hook = intent_hook
        self.crawl_delay = crawl_delay
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.sitemap_max_depth = sitemap_max_depth
        self.crawl_max_depth = crawl_max_depth

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: Callable[[], AsyncSession]) -> "IngestionPipeline":
        if not settings.openai_api_key:
            log.warning("[BOOT] OPENAI_API_KEY missing, embedding calls will fail")
        openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
        embedder = EmbeddingClient(openai_client, settings.embed_model, settings.embedding_dim)
        fetcher = PageFetcher(build_http_client(settings.crawler_user_agent, settings.fetch_timeout))
        storage = BlobStorage(
            build_supabase_client(settings.supabase_project_url, settings.supabase_service_key),
            settings.docs_bucket,
        )
        hook = None
        if settings.intent_detection_enabled:
            hook = IntentDetector(session_factory, openai_client, settings.intent_model)
        return cls(
            session_factory, embedder, fetcher, storage, hook,
            crawl_delay=settings.crawl_delay,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            sitemap_max_depth=settings.sitemap_max_depth,
            crawl_max_depth=settings.crawl_max_depth,
        )

    def _orchestrator(self, session: AsyncSession) -> CrawlOrchestrator:
        return CrawlOrchestrator(
            WebsiteRepository(session),
            FragmentStore(session),
            self.fetcher,
            self.embedder,
            self.intent_hook,
            delay=self.crawl_delay,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def _resolver(self) -> SitemapResolver:
        return SitemapResolver(
            self.fetcher,
            delay=self.crawl_delay,
            max_sitemap_depth=self.sitemap_max_depth,
            max_crawl_depth=self.crawl_max_depth,
        )

    # ====== DOCUMENTS ======
    async def process_document(self, document_id: str, chatbot_id: str, data: bytes, media_type: str) -> DocumentResult:
        async with self.session_factory() as session:
            processor = DocumentProcessor(
                DocumentRepository(session),
                FragmentStore(session),
                self.embedder,
                self.intent_hook,
                chunk_size=self.chunk_size,
                overlap=self.chunk_overlap,
            )
            return await processor.process(document_id, chatbot_id, data, media_type)

    async def run_document_task(self, document_id: str, chatbot_id: str, data: bytes, media_type: str) -> None:
        """BackgroundTasks entry point: the failure is already on the document row."""
        try:
            await self.process_document(document_id, chatbot_id, data, media_type)
        except Exception as e:
            log.error(f"[INGEST] background processing of document={document_id} failed: {e}")

    # ====== WEBSITES ======
    async def discover_urls(
        self, url: Optional[str], input_mode: str, sitemap_content: Optional[str], max_pages: int,
    ) -> List[str]:
        resolver = self._resolver()
        if input_mode == "sitemap" and sitemap_content:
            urls = await resolver.resolve_sitemap_content(sitemap_content)
            if not urls:
                urls = parse_sitemap(sitemap_content)
            return urls
        if url:
            discovery = await resolver.discover(url, max_pages)
            log.info(f"[CRAWL] discovered {len(discovery.urls)} URLs via {discovery.method}")
            return discovery.urls
        return []

    async def index_website(
        self,
        source_id: str,
        chatbot_id: str,
        url: Optional[str],
        input_mode: str = "url",
        sitemap_content: Optional[str] = None,
        max_pages: int = 50,
    ) -> Optional[CrawlResult]:
        """Discovery, then crawl. None when nothing was found (the source is marked error)."""
        async with self.session_factory() as session:
            repo = WebsiteRepository(session)
            urls = await self.discover_urls(url, input_mode, sitemap_content, max_pages)
            if not urls:
                log.warning(f"[CRAWL] source={source_id}: {NO_URLS}")
                await repo.finish_crawl(source_id, "error", page_count=0, error_message=NO_URLS)
                return None
            return await self._orchestrator(session).crawl_website(
                source_id, chatbot_id, urls[:max_pages], max_pages,
            )

    async def run_website_task(self, source_id: str, chatbot_id: str, **kwargs) -> None:
        try:
            await self.index_website(source_id, chatbot_id, **kwargs)
        except Exception as e:
            log.error(f"[CRAWL] background indexing of source={source_id} failed: {e}")
            try:
                async with self.session_factory() as session:
                    await WebsiteRepository(session).finish_crawl(source_id, "error", error_message=str(e))
            except PersistError as pe:
                log.error(f"[CRAWL] could not mark source={source_id} error: {pe}")

    async def refresh_website(self, source_id: str) -> RefreshResult:
        async with self.session_factory() as session:
            engine = RefreshEngine(
                WebsiteRepository(session),
                self._orchestrator(session),
                self.fetcher,
                delay=self.crawl_delay,
            )
            return await engine.refresh_website(source_id)

    async def run_refresh_task(self, source_id: str) -> None:
        try:
            await self.refresh_website(source_id)
        except SourceNotFound as e:
            log.warning(f"[REFRESH] {e}")
        except Exception as e:
            log.error(f"[REFRESH] background refresh of source={source_id} failed: {e}")
            try:
                async with self.session_factory() as session:
                    await WebsiteRepository(session).finish_crawl(source_id, "error", error_message=str(e))
            except PersistError as pe:
                log.error(f"[REFRESH] could not mark source={source_id} error: {pe}")

    # ====== RETRIEVAL ======
    async def search(self, chatbot_id: str, query: str, top_k: int = 5) -> List[SearchHit]:
        vec = await self.embedder.embed(query)
        async with self.session_factory() as session:
            return await FragmentStore(session).search(chatbot_id, vec, top_k)

    async def aclose(self) -> None:
        await self.fetcher.aclose()
        await self.embedder.aclose()
