"""Pipeline state definition for LangGraph."""

import operator
from typing import Annotated, TypedDict

from roadmap.models import ExtractedText, Segmentation, SegmentationBody


class SegmentationState(TypedDict, total=False):
    """State that flows through one segmentation run.

    Nothing here outlives the run except what the persist stage writes.
    """

    # Input
    document_id: str
    owner_id: str
    document_label: str

    # check_cache
    cached: Segmentation | None

    # fetch_bytes / extract / generate / validate
    pdf_bytes: bytes | None
    extracted: ExtractedText | None
    raw_response: str | None
    body: SegmentationBody | None

    # Set by the first failing stage; routes the run to fallback
    failed_stage: str | None
    fallback_reason: str | None

    # persist
    saved: Segmentation | None

    # Stages visited, in order
    stages: Annotated[list[str], operator.add]


def create_initial_state(document_id: str, owner_id: str, document_label: str | None = None) -> SegmentationState:
    """Create initial pipeline state for one (document, owner) pair."""
    return SegmentationState(
        document_id=document_id,
        owner_id=owner_id,
        document_label=document_label or document_id,
        stages=[],
    )
