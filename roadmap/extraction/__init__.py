"""PDF text extraction."""

from .pdf_extractor import extract_text, page_marker

__all__ = ["extract_text", "page_marker"]
