"""Models for document text extraction."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class PageContent(BaseModel):
    """Content extracted from a single document page."""

    page_number: int = Field(..., ge=1, description="1-indexed page number")
    text: str = Field(default="", description="Space-joined text tokens, empty if undecodable")


class ExtractedText(BaseModel):
    """Page-delimited text of one document. Never persisted."""

    text: str = Field(..., description="Full text, each page prefixed by its page marker")
    page_count: int = Field(..., ge=0, description="Number of pages in the document")
    extracted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When extraction occurred",
    )
    pages: list[PageContent] = Field(default_factory=list, description="Content per page")
