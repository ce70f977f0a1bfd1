"""Build bounded-length segmentation requests."""

from dataclasses import dataclass, field

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

from roadmap.config.prompts import (
    SEGMENTATION_SYSTEM_PROMPT,
    SEGMENTATION_USER_PROMPT,
    TRUNCATION_MARKER,
)

DEFAULT_MAX_CHARS = 15000

SEGMENTATION_PROMPT = ChatPromptTemplate.from_messages([
    ("system", SEGMENTATION_SYSTEM_PROMPT),
    ("human", SEGMENTATION_USER_PROMPT),
])


@dataclass(frozen=True)
class GenerationRequest:
    """Rendered messages for one generation call."""

    messages: list[BaseMessage] = field(repr=False)
    document_label: str
    text_length: int
    truncated: bool


def truncate_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> tuple[str, bool]:
    """Cut text at a fixed character bound and append the truncation marker.

    The cut ignores word and sentence boundaries so the same input always
    truncates at the same place.
    """
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars] + TRUNCATION_MARKER, True


def build_segmentation_request(
    text: str,
    document_label: str,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> GenerationRequest:
    """Render the segmentation prompt for a document's extracted text."""
    bounded_text, truncated = truncate_text(text, max_chars)

    # Variables are substituted, not parsed, so braces in the text are safe.
    messages = SEGMENTATION_PROMPT.format_messages(
        document_label=document_label,
        document_text=bounded_text,
    )

    return GenerationRequest(
        messages=messages,
        document_label=document_label,
        text_length=len(bounded_text),
        truncated=truncated,
    )
