"""Pydantic data models for the pipeline."""

from .enums import Difficulty, PipelineStage, SegmentationMethod
from .extraction import ExtractedText, PageContent
from .segmentation import Segment, Segmentation, SegmentationBody
from .envelope import (
    FREE_COST_LABEL,
    ErrorEnvelope,
    MessageEnvelope,
    SegmentationData,
    SegmentationEnvelope,
)

__all__ = [
    # Enums
    "Difficulty",
    "SegmentationMethod",
    "PipelineStage",
    # Extraction
    "ExtractedText",
    "PageContent",
    # Segmentation
    "Segment",
    "SegmentationBody",
    "Segmentation",
    # Envelopes
    "FREE_COST_LABEL",
    "SegmentationData",
    "SegmentationEnvelope",
    "MessageEnvelope",
    "ErrorEnvelope",
]
