# app/services/page_content.py
import hashlib, re
from dataclasses import dataclass

from bs4 import BeautifulSoup

# blocks that never carry page content
NON_CONTENT_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside"]

_CONTENT_CLASS = re.compile(r"content", re.I)
_DESCRIPTION = re.compile(r"^description$", re.I)

@dataclass
class PageContent:
    url: str
    title: str
    description: str
    content: str


def compute_content_hash(content: str) -> str:
    """sha256 of the extracted page text, used by refresh to detect changes."""
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()

def _collapse(s: str) -> str:
    return re.sub(r"\s+", " ", s or "").strip()

def extract_page_content(html: str, url: str = "") -> PageContent:
    """
    Reduce a fetched HTML document to title, meta description and main text.
    An empty `content` is a valid result (the page simply yields no chunks).
    """
    soup = BeautifulSoup(html or "", "html.parser")

    title = _collapse(soup.title.get_text()) if soup.title else ""

    description = ""
    meta = soup.find("meta", attrs={"name": _DESCRIPTION})
    if meta and meta.get("content"):
        description = _collapse(meta["content"])

    for el in soup(NON_CONTENT_TAGS):
        el.decompose()

    root = (
        soup.find("main")
        or soup.find("article")
        or soup.find("div", class_=_CONTENT_CLASS)
        or soup.body
        or soup
    )

    # get_text already decodes entities (&amp; &nbsp; ...)
    content = _collapse(root.get_text(" "))
    return PageContent(url=url, title=title, description=description, content=content)
