# app/services/sitemap.py
import asyncio, html, logging, re
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, List
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from app.core.errors import FetchError
from app.services.fetcher import PageFetcher

log = logging.getLogger(__name__)

# conventional locations, probed in this order
SITEMAP_PATHS = (
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap-index.xml",
    "/sitemaps/sitemap.xml",
)

_SITEMAP_BLOCK = re.compile(r"<sitemap\b[^>]*>(.*?)</sitemap>", re.I | re.S)
_URL_BLOCK     = re.compile(r"<url\b[^>]*>(.*?)</url>", re.I | re.S)
_LOC           = re.compile(r"<loc>\s*([^<]+?)\s*</loc>", re.I)

_SKIP_PREFIXES = ("#", "mailto:", "tel:", "javascript:")
_ASSET_EXT = re.compile(
    r"\.(jpg|jpeg|png|gif|svg|webp|ico|bmp|css|js|mjs|map|pdf|zip|gz|tgz|tar|rar|7z"
    r"|woff|woff2|ttf|otf|eot|mp3|mp4|avi|mov|webm)$",
    re.I,
)

# ====== PARSING ======
def _locs(fragment: str) -> List[str]:
    return [html.unescape(m.group(1).strip()) for m in _LOC.finditer(fragment)]

def is_sitemap_document(content: str) -> bool:
    return "<urlset" in content or "<sitemapindex" in content

def is_sitemap_url(url: str) -> bool:
    return url.endswith(".xml") or "sitemap" in url

def parse_sitemap(content: str) -> List[str]:
    """
    Sitemap index -> child sitemap URLs; plain sitemap -> page URLs.
    Malformed <url> blocks are skipped; if none yields a <loc>, any http <loc> is taken.
    """
    content = content or ""

    blocks = _SITEMAP_BLOCK.findall(content)
    if blocks:
        log.info(f"[SITEMAP] index with {len(blocks)} child sitemaps")
        return [loc for b in blocks for loc in _locs(b)[:1]]

    urls = [loc for b in _URL_BLOCK.findall(content) for loc in _locs(b)[:1]]
    if urls:
        return urls

    return [loc for loc in _locs(content) if loc.startswith("http")]

# ====== LINKS ======
def normalize_url(url: str) -> str:
    """Absolute URL without fragment or trailing slash; the dedupe key for discovery."""
    p = urlparse(url)
    path = p.path.rstrip("/")
    return urlunparse(p._replace(path=path, fragment=""))

def extract_links(page_html: str, base_url: str) -> List[str]:
    """Same-host document links found in <a href>, normalized and deduplicated in page order."""
    base_host = urlparse(base_url).hostname
    soup = BeautifulSoup(page_html or "", "html.parser")
    seen = set()
    out: List[str] = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.lower().startswith(_SKIP_PREFIXES):
            continue
        absolute = urljoin(base_url, href)
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or parsed.hostname != base_host:
            continue
        clean = normalize_url(absolute)
        if _ASSET_EXT.search(urlparse(clean).path):
            continue
        if clean not in seen:
            seen.add(clean)
            out.append(clean)
    return out

def _dedupe(urls: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for u in urls:
        if u not in seen:
            seen.add(u)
            out.append(u)
    return out

# ====== RESOLVER ======
@dataclass
class Discovery:
    urls: List[str] = field(default_factory=list)
    method: str = "none"            # 'sitemap' | 'crawl' | 'none'


class SitemapResolver:
    """
    Finds the page URLs of a site: sitemap files first (recursing through
    sitemap indexes), then a breadth-first same-host crawl. Requests are
    strictly sequential with `delay` seconds between them.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        delay: float = 1.0,
        max_sitemap_depth: int = 2,
        max_crawl_depth: int = 3,
    ):
        self.fetcher = fetcher
        self.delay = delay
        self.max_sitemap_depth = max_sitemap_depth
        self.max_crawl_depth = max_crawl_depth
        self._requests = 0

    async def _get(self, url: str):
        if self._requests and self.delay > 0:
            await asyncio.sleep(self.delay)
        self._requests += 1
        return await self.fetcher.fetch(url)

    async def discover(self, root_url: str, max_pages: int = 50) -> Discovery:
        urls = await self.fetch_sitemap(root_url)
        if urls:
            return Discovery(urls=urls, method="sitemap")
        log.info(f"[SITEMAP] no sitemap for {root_url}, crawling links")
        urls = await self.crawl(root_url, max_pages)
        return Discovery(urls=urls, method="crawl" if urls else "none")

    async def fetch_sitemap(self, root_url: str) -> List[str]:
        base = root_url.rstrip("/")
        for path in SITEMAP_PATHS:
            candidate = f"{base}{path}"
            try:
                res = await self._get(candidate)
            except FetchError as e:
                log.info(f"[SITEMAP] {candidate} unreachable: {e}")
                continue
            if not res.ok or not is_sitemap_document(res.body):
                continue
            log.info(f"[SITEMAP] found sitemap at {candidate}")
            pages = await self._expand(res.body, self.max_sitemap_depth)
            log.info(f"[SITEMAP] {len(pages)} page URLs from sitemaps")
            return pages
        return []

    async def resolve_sitemap_content(self, content: str) -> List[str]:
        """Expand an uploaded sitemap document (child sitemaps are fetched)."""
        return await self._expand(content, self.max_sitemap_depth)

    async def _expand(self, content: str, depth: int) -> List[str]:
        entries = parse_sitemap(content)
        pages = [u for u in entries if not is_sitemap_url(u)]
        children = [u for u in entries if is_sitemap_url(u)]

        if children and depth > 0:
            log.info(f"[SITEMAP] following {len(children)} child sitemaps (depth={depth})")
            for child in children:
                try:
                    res = await self._get(child)
                except FetchError as e:
                    log.info(f"[SITEMAP] child sitemap {child} failed: {e}")
                    continue
                if res.ok:
                    pages.extend(await self._expand(res.body, depth - 1))
        return _dedupe(pages)

    async def crawl(self, root_url: str, max_pages: int = 50) -> List[str]:
        start = normalize_url(root_url)
        discovered = {start}
        ordered = [start]
        queue = deque([(start, 0)])

        while queue and len(discovered) < max_pages:
            url, depth = queue.popleft()
            if depth >= self.max_crawl_depth:
                continue
            try:
                res = await self._get(url)
            except FetchError as e:
                log.info(f"[SITEMAP] crawl skip {url}: {e}")
                continue
            if not res.ok or not res.is_html:
                continue

            for link in extract_links(res.body, url):
                if link not in discovered and len(discovered) < max_pages:
                    discovered.add(link)
                    ordered.append(link)
                    queue.append((link, depth + 1))

        return ordered
