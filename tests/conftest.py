import os
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional
from uuid import uuid4

# Settings() is built at import time; it needs a database URL even though no test connects
os.environ.setdefault("DATABASE_URL", "postgresql+asyncpg://kb:kb@localhost:5432/kb_test")
os.environ.setdefault("INTENT_DETECTION_ENABLED", "false")

import httpx
import pytest

from app.core.errors import EmbeddingServiceError
from app.services.fetcher import PageFetcher, build_http_client

DIM = 8


def html_page(title: str, body: str, links: List[str] = (), description: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    meta = f'<meta name="description" content="{description}">' if description else ""
    return (
        f"<html><head><title>{title}</title>{meta}</head>"
        f"<body><nav>Menu {anchors}</nav><main>{body}</main><footer>Footer</footer></body></html>"
    )


class FakeWeb:
    """URL -> (status, content type, body). Anything unknown answers 404."""

    def __init__(self, routes: Optional[Dict[str, tuple]] = None):
        self.routes = {k.rstrip("/"): v for k, v in (routes or {}).items()}
        self.requests: List[str] = []

    def set(self, url: str, status: int, content_type: str, body: str) -> None:
        self.routes[url.rstrip("/")] = (status, content_type, body)

    def html(self, url: str, body: str) -> None:
        self.set(url, 200, "text/html; charset=utf-8", body)

    def xml(self, url: str, body: str) -> None:
        self.set(url, 200, "application/xml", body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url).rstrip("/")
        self.requests.append(url)
        if url not in self.routes:
            return httpx.Response(404, headers={"content-type": "text/html"}, text="not found")
        status, ctype, body = self.routes[url]
        return httpx.Response(status, headers={"content-type": ctype}, text=body)

    def fetcher(self) -> PageFetcher:
        return PageFetcher(build_http_client(transport=httpx.MockTransport(self.handler)))


class FakeEmbedder:
    def __init__(self, fail_on: Optional[str] = None):
        self.calls: List[str] = []
        self.fail_on = fail_on

    async def embed(self, text: str) -> List[float]:
        if self.fail_on and self.fail_on in text:
            raise EmbeddingServiceError("embedding request failed: boom")
        self.calls.append(text)
        base = float(len(text) % 97) / 100.0
        return [base] * DIM

    async def aclose(self) -> None:
        pass


class FakeStore:
    def __init__(self):
        self.fragments = []

    async def upsert_fragments(self, fragments) -> int:
        self.fragments.extend(fragments)
        return len(fragments)

    async def delete_fragments(self, *, document_id=None, page_id=None) -> None:
        if document_id is not None:
            self.fragments = [f for f in self.fragments if f.document_id != document_id]
        else:
            self.fragments = [f for f in self.fragments if f.page_id != page_id]

    async def delete_by_source_type(self, chatbot_id, source_type) -> None:
        self.fragments = [
            f for f in self.fragments
            if not (f.chatbot_id == chatbot_id and f.source_type == source_type)
        ]

    def for_page(self, page_id):
        return [f for f in self.fragments if f.page_id == page_id]


class FakeWebsiteRepo:
    def __init__(self):
        self.sources: Dict[str, dict] = {}
        self.pages: Dict[tuple, dict] = {}
        self.status_history: List[tuple] = []

    def add_source(self, chatbot_id: str, url: str = "https://site.test", status: str = "pending") -> dict:
        sid = str(uuid4())
        self.sources[sid] = {
            "id": sid, "chatbot_id": chatbot_id, "url": url, "input_type": "url",
            "crawl_status": status, "crawl_config": {"maxPages": 50}, "page_count": 0,
            "last_crawl_at": None, "error_message": None,
            "created_at": datetime.now(timezone.utc),
        }
        return self.sources[sid]

    async def create_source(self, *, chatbot_id, url, input_type, max_pages):
        src = self.add_source(chatbot_id, url)
        src["input_type"] = input_type
        src["crawl_config"] = {"maxPages": max_pages}
        return src

    async def get_source(self, source_id):
        return self.sources.get(str(source_id))

    async def get_source_for_chatbot(self, chatbot_id):
        for s in self.sources.values():
            if s["chatbot_id"] == str(chatbot_id):
                return s
        return None

    async def delete_sources(self, *, source_id=None, chatbot_id=None):
        for sid, s in list(self.sources.items()):
            if sid == source_id or s["chatbot_id"] == chatbot_id:
                del self.sources[sid]

    async def set_crawl_status(self, source_id, status, error_message=None):
        self.status_history.append((source_id, status))
        self.sources[source_id]["crawl_status"] = status

    async def finish_crawl(self, source_id, status, *, page_count=None, error_message=None):
        self.status_history.append((source_id, status))
        src = self.sources[source_id]
        src["crawl_status"] = status
        src["error_message"] = error_message
        src["last_crawl_at"] = datetime.now(timezone.utc)
        if page_count is not None:
            src["page_count"] = page_count

    async def list_pages(self, source_id):
        return [dict(p) for (sid, _), p in self.pages.items() if sid == source_id]

    def _upsert(self, source_id, chatbot_id, url, **fields):
        key = (source_id, url)
        page = self.pages.get(key)
        if page is None:
            page = {"id": str(uuid4()), "website_source_id": source_id, "chatbot_id": chatbot_id,
                    "url": url, "title": None, "meta_description": None, "content_hash": None,
                    "status": "pending", "last_crawled_at": None, "error_message": None}
            self.pages[key] = page
        for k, v in fields.items():
            if v is not None or k in ("error_message",):
                page[k] = v
        page["last_crawled_at"] = datetime.now(timezone.utc)
        return page["id"]

    async def upsert_crawled_page(self, *, source_id, chatbot_id, url, title, description, content_hash):
        return self._upsert(source_id, chatbot_id, url, title=title, meta_description=description,
                            content_hash=content_hash, status="crawled", error_message=None)

    async def upsert_error_page(self, *, source_id, chatbot_id, url, message):
        page_id = self._upsert(source_id, chatbot_id, url, status="error", error_message=message)
        self.pages[(source_id, url)]["content_hash"] = None
        return page_id

    def _by_id(self, page_id):
        return next(p for p in self.pages.values() if p["id"] == page_id)

    async def touch_page(self, page_id):
        self._by_id(page_id)["last_crawled_at"] = datetime.now(timezone.utc)

    async def update_page_content(self, page_id, *, title, description, content_hash):
        self._by_id(page_id).update(
            title=title, meta_description=description, content_hash=content_hash,
            status="crawled", error_message=None,
        )

    async def mark_page_error(self, page_id, message):
        self._by_id(page_id).update(status="error", error_message=message)


class FakeDocumentRepo:
    def __init__(self, plans: Optional[Dict[str, str]] = None):
        self.plans = dict(plans or {})
        self.documents: Dict[str, dict] = {}
        self.kb_types: Dict[str, str] = {}

    async def get_chatbot_plan(self, chatbot_id):
        return self.plans.get(str(chatbot_id))

    async def set_knowledge_base_type(self, chatbot_id, kb_type):
        self.kb_types[str(chatbot_id)] = kb_type

    async def create_document(self, *, chatbot_id, filename, original_filename, file_type, file_size, storage_path):
        doc_id = str(uuid4())
        self.documents[doc_id] = {
            "id": doc_id, "chatbot_id": chatbot_id, "filename": filename,
            "original_filename": original_filename, "file_type": file_type, "file_size": file_size,
            "storage_path": storage_path, "status": "processing", "chunk_count": 0,
            "error_message": None, "created_at": datetime.now(timezone.utc), "updated_at": None,
        }
        return self.documents[doc_id]

    async def get_document(self, document_id):
        return self.documents.get(str(document_id))

    async def list_documents(self, chatbot_id):
        return [d for d in self.documents.values() if d["chatbot_id"] == str(chatbot_id)]

    async def delete_document(self, document_id):
        self.documents.pop(str(document_id), None)

    async def mark_ready(self, document_id, chunk_count):
        self.documents[document_id].update(status="ready", chunk_count=chunk_count, error_message=None)

    async def mark_error(self, document_id, message):
        self.documents[document_id].update(status="error", error_message=message)

    async def usage(self, chatbot_id):
        docs = await self.list_documents(chatbot_id)
        return {"document_count": len(docs), "total_size": sum(d["file_size"] for d in docs)}


class SleepRecorder:
    """Stands in for asyncio.sleep; notes how many requests FakeWeb had served at each pause."""

    def __init__(self, web: FakeWeb):
        self.web = web
        self.calls: List[tuple] = []

    async def sleep(self, seconds: float) -> None:
        self.calls.append((len(self.web.requests), seconds))


class RecordingHook:
    def __init__(self, fail: bool = False):
        self.calls: List[str] = []
        self.fail = fail

    async def on_ingestion_complete(self, chatbot_id: str) -> None:
        self.calls.append(chatbot_id)
        if self.fail:
            raise RuntimeError("llm unavailable")


@pytest.fixture
def chatbot_id():
    return str(uuid4())

@pytest.fixture
def web():
    return FakeWeb()

@pytest.fixture
def embedder():
    return FakeEmbedder()

@pytest.fixture
def store():
    return FakeStore()

@pytest.fixture
def website_repo():
    return FakeWebsiteRepo()

@pytest.fixture
def document_repo(chatbot_id):
    return FakeDocumentRepo({chatbot_id: "basic"})

@pytest.fixture
def sleeps(web, monkeypatch):
    recorder = SleepRecorder(web)
    for module in ("crawler", "refresh", "sitemap"):
        monkeypatch.setattr(f"app.services.{module}.asyncio", SimpleNamespace(sleep=recorder.sleep))
    return recorder
