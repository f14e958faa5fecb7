"""Tests for uploaded-file text extraction."""
import fitz
import pytest

from ragchat.errors import ExtractionError
from ragchat.extract import extract_text, is_pdf


def make_pdf(*pages: str) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class TestExtractText:
    def test_plain_text(self):
        assert extract_text("héllo\nworld".encode("utf-8"), "notes.txt", "text/plain") == "héllo\nworld"

    def test_byte_order_mark_dropped(self):
        assert extract_text(b"\xef\xbb\xbfhello", "bom.txt") == "hello"

    def test_invalid_utf8_fails(self):
        with pytest.raises(ExtractionError, match="Failed to extract text"):
            extract_text(b"\xff\xfe\x00bad", "binary.bin", "application/octet-stream")

    def test_pdf_pages_extracted(self):
        data = make_pdf("First page text", "Second page text")

        text = extract_text(data, "report.pdf", "application/pdf")

        assert "First page text" in text
        assert "Second page text" in text

    def test_pdf_detected_by_extension(self):
        data = make_pdf("By extension")
        assert "By extension" in extract_text(data, "REPORT.PDF", None)

    def test_corrupt_pdf_fails(self):
        with pytest.raises(ExtractionError):
            extract_text(b"%PDF-1.4 garbage", "broken.pdf", "application/pdf")


class TestIsPdf:
    @pytest.mark.parametrize(
        "filename,content_type,expected",
        [
            ("a.pdf", None, True),
            ("a.txt", "application/pdf", True),
            ("a.txt", "application/pdf; charset=binary", True),
            ("a.txt", "text/plain", False),
            ("pdf.txt", None, False),
        ],
    )
    def test_detection(self, filename, content_type, expected):
        assert is_pdf(filename, content_type) is expected
