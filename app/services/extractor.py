# app/services/extractor.py
import io, logging, mimetypes, zipfile
from typing import Optional

import fitz  # PyMuPDF
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError

from app.core.errors import UnsupportedFormat

log = logging.getLogger(__name__)

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PLAIN_TEXT = "text/plain"
MARKDOWN = "text/markdown"

SUPPORTED_MEDIA_TYPES = (PDF, DOCX, PLAIN_TEXT, MARKDOWN)

_EXTENSION_TYPES = {
    ".pdf": PDF,
    ".docx": DOCX,
    ".txt": PLAIN_TEXT,
    ".md": MARKDOWN,
    ".markdown": MARKDOWN,
}

def resolve_media_type(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Declared type wins when it is one we know; browsers often send
    'application/octet-stream' (or nothing) for .md files, so fall back to the extension.
    """
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype in SUPPORTED_MEDIA_TYPES:
        return ctype
    if filename:
        suffix = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if suffix in _EXTENSION_TYPES:
            return _EXTENSION_TYPES[suffix]
        guessed, _ = mimetypes.guess_type(filename)
        if guessed in SUPPORTED_MEDIA_TYPES:
            return guessed
    return ctype or "application/octet-stream"

def _pdf_text(data: bytes) -> str:
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            return "\n".join(page.get_text() for page in doc)
    except (RuntimeError, ValueError) as e:
        # malformed or encrypted PDFs: nothing to extract, the caller decides
        log.warning(f"[EXTRACT] PDF could not be read: {e}")
        return ""

def _docx_text(data: bytes) -> str:
    try:
        doc = DocxDocument(io.BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        log.warning(f"[EXTRACT] DOCX could not be read: {e}")
        return ""
    return "\n".join(p.text for p in doc.paragraphs)

def extract_text(data: bytes, media_type: str) -> str:
    """Decode raw bytes into plain text according to the declared media type."""
    if media_type == PDF:
        return _pdf_text(data)
    if media_type == DOCX:
        return _docx_text(data)
    if media_type in (PLAIN_TEXT, MARKDOWN):
        return data.decode("utf-8", errors="replace")
    raise UnsupportedFormat(media_type)
