"""Deterministic fallback segmentation.

Used whenever fetching, extraction, generation or validation fails. It has no
dependencies and cannot fail.
"""

import re

import structlog

from roadmap.models import Difficulty, Segment, SegmentationBody, SegmentationMethod

logger = structlog.get_logger(__name__)

FALLBACK_OVERVIEW = "Document divided into sections for guided learning."
FALLBACK_TOTAL_TIME = "50-80 minutes"
UNTITLED = "Untitled document"

_PDF_SUFFIX_RE = re.compile(r"\.pdf$", re.IGNORECASE)

_FALLBACK_SEGMENTS = (
    Segment(
        id=1,
        title="Introduction & Overview",
        description="Get familiar with the document structure and main topics",
        key_points=["Document overview", "Key concepts", "Learning path"],
        difficulty=Difficulty.BEGINNER,
        estimated_time="5-10 minutes",
        learning_objectives=["Understand document scope and structure"],
    ),
    Segment(
        id=2,
        title="Core Concepts",
        description="Learn the main information and foundational concepts",
        key_points=["Key information", "Important concepts", "Examples"],
        difficulty=Difficulty.INTERMEDIATE,
        estimated_time="20-30 minutes",
        learning_objectives=["Understand core concepts", "Learn key information"],
    ),
    Segment(
        id=3,
        title="Advanced Topics",
        description="Explore deeper topics and complex ideas",
        key_points=["Advanced concepts", "Detailed examples", "Applications"],
        difficulty=Difficulty.ADVANCED,
        estimated_time="15-25 minutes",
        learning_objectives=["Understand advanced topics", "Apply concepts"],
    ),
    Segment(
        id=4,
        title="Summary & Review",
        description="Consolidate and review what you've learned",
        key_points=["Key takeaways", "Review questions", "Next steps"],
        difficulty=Difficulty.INTERMEDIATE,
        estimated_time="10-15 minutes",
        learning_objectives=["Consolidate learning", "Identify next steps"],
    ),
)


def fallback_title(document_label: str) -> str:
    """Document label without a trailing .pdf extension."""
    title = _PDF_SUFFIX_RE.sub("", (document_label or "").strip()).strip()
    return title or UNTITLED


def fallback_segmentation(document_label: str) -> SegmentationBody:
    """Build the fixed four-segment roadmap for a document."""
    logger.info("fallback_segmentation", document_label=document_label)

    return SegmentationBody(
        title=fallback_title(document_label),
        overview=FALLBACK_OVERVIEW,
        segments=list(_FALLBACK_SEGMENTS),
        estimated_total_time=FALLBACK_TOTAL_TIME,
        method=SegmentationMethod.FALLBACK,
    )
