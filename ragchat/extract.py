"""Text extraction for uploaded files (PDF or plain text)."""
from typing import Optional

import fitz  # PyMuPDF
import structlog

from ragchat.errors import ExtractionError

logger = structlog.get_logger()

PDF_MIME_TYPE = "application/pdf"


def is_pdf(filename: str, content_type: Optional[str]) -> bool:
    if content_type and content_type.split(";")[0].strip().lower() == PDF_MIME_TYPE:
        return True
    return filename.lower().endswith(".pdf")


def extract_pdf_text(data: bytes) -> str:
    """Extract text from every page of a PDF.

    Raises:
        ExtractionError: If the bytes are not a readable PDF
    """
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
    except Exception as e:
        raise ExtractionError(f"Failed to extract text: {e}") from e

    if not pages:
        raise ExtractionError("Failed to extract text: PDF has no pages")

    text = "\n".join(page.strip() for page in pages if page.strip())
    logger.info("pdf_text_extracted", pages=len(pages), text_length=len(text))
    return text


def extract_plain_text(data: bytes) -> str:
    """Decode UTF-8 text (a leading BOM is dropped).

    Raises:
        ExtractionError: If the bytes are not valid UTF-8
    """
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ExtractionError(f"Failed to extract text: file is not valid UTF-8 ({e})") from e


def extract_text(data: bytes, filename: str, content_type: Optional[str] = None) -> str:
    """Extract text from an uploaded file based on its type."""
    if is_pdf(filename, content_type):
        return extract_pdf_text(data)
    return extract_plain_text(data)
