import io

import fitz
import pytest
from docx import Document as DocxDocument

from app.core.errors import UnsupportedFormat
from app.services.extractor import DOCX, MARKDOWN, PDF, PLAIN_TEXT, extract_text, resolve_media_type


def _pdf_bytes(*pages: str) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data

def _docx_bytes(*paragraphs: str) -> bytes:
    doc = DocxDocument()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class TestExtractText:
    def test_plain_text(self):
        assert extract_text("héllo world".encode("utf-8"), PLAIN_TEXT) == "héllo world"

    def test_markdown_is_plain_decoded(self):
        assert extract_text(b"# Title\n\nBody", MARKDOWN) == "# Title\n\nBody"

    def test_invalid_utf8_is_replaced(self):
        out = extract_text(b"ok \xff\xfe end", PLAIN_TEXT)
        assert out.startswith("ok ") and out.endswith(" end")
        assert "�" in out

    def test_pdf_pages_are_joined(self):
        out = extract_text(_pdf_bytes("First page text", "Second page text"), PDF)
        assert "First page text" in out
        assert "Second page text" in out
        assert out.index("First") < out.index("Second")

    def test_docx_paragraphs(self):
        out = extract_text(_docx_bytes("Intro paragraph", "Second paragraph"), DOCX)
        assert out == "Intro paragraph\nSecond paragraph"

    def test_malformed_pdf_gives_empty_text(self):
        assert extract_text(b"definitely not a pdf", PDF) == ""

    def test_malformed_docx_gives_empty_text(self):
        assert extract_text(b"definitely not a docx", DOCX) == ""

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedFormat) as exc:
            extract_text(b"\x89PNG", "image/png")
        assert "Unsupported file type: image/png" in str(exc.value)


class TestResolveMediaType:
    def test_known_type_wins(self):
        assert resolve_media_type("application/pdf", "x.txt") == PDF

    def test_parameters_are_ignored(self):
        assert resolve_media_type("text/plain; charset=utf-8", None) == PLAIN_TEXT

    @pytest.mark.parametrize("name,expected", [
        ("notes.md", MARKDOWN), ("README.markdown", MARKDOWN), ("a.TXT", PLAIN_TEXT),
        ("report.pdf", PDF), ("memo.docx", DOCX),
    ])
    def test_generic_type_falls_back_to_extension(self, name, expected):
        assert resolve_media_type("application/octet-stream", name) == expected

    def test_unknown_stays_unknown(self):
        assert resolve_media_type("image/png", "photo.png") == "image/png"
