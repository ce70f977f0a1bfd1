"""PDF text extraction using pdfplumber."""

import io

import pdfplumber
import structlog

from roadmap.errors import ExtractionFailed
from roadmap.models import ExtractedText, PageContent

logger = structlog.get_logger(__name__)


def page_marker(page_number: int) -> str:
    """Marker that precedes each page's text in the extracted document."""
    return f"\n[PAGE {page_number}]\n"


def extract_text(pdf_bytes: bytes) -> ExtractedText:
    """Extract page-delimited text from raw PDF bytes.

    Pages are processed in document order. A page that cannot be decoded
    contributes an empty string; only document-level failures abort.

    Args:
        pdf_bytes: Raw document bytes.

    Returns:
        ExtractedText with one marker-prefixed block per page.

    Raises:
        ExtractionFailed: If the document is empty, corrupt or has no pages.
    """
    if not pdf_bytes:
        raise ExtractionFailed("Document is empty")

    logger.info("extracting_pdf", size_bytes=len(pdf_bytes))

    pages: list[PageContent] = []

    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            total_pages = len(pdf.pages)
            if total_pages == 0:
                raise ExtractionFailed("Document has zero pages")

            logger.info("pdf_opened", total_pages=total_pages)

            for page_num, page in enumerate(pdf.pages, start=1):
                pages.append(PageContent(page_number=page_num, text=_page_text(page, page_num)))

    except ExtractionFailed:
        raise
    except Exception as e:
        logger.error("pdf_extraction_failed", error=str(e))
        raise ExtractionFailed(f"PDF extraction failed: {e}") from e

    text = "".join(page_marker(p.page_number) + p.text for p in pages)

    extracted = ExtractedText(text=text, page_count=len(pages), pages=pages)

    logger.info(
        "pdf_extraction_complete",
        pages=extracted.page_count,
        total_chars=len(extracted.text),
    )

    return extracted


def _page_text(page, page_num: int) -> str:
    """Join a page's words in content-stream order with single spaces."""
    try:
        words = page.extract_words(use_text_flow=True)
    except Exception as e:
        logger.warning("page_extraction_failed", page=page_num, error=str(e))
        return ""

    text = " ".join(word["text"] for word in words if word.get("text"))

    logger.debug("page_extracted", page=page_num, chars=len(text))

    return text
