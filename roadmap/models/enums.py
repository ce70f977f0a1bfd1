"""Enumeration types for the pipeline models."""

from enum import Enum


class Difficulty(str, Enum):
    """Difficulty level of a learning segment."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SegmentationMethod(str, Enum):
    """Which path produced a segmentation."""

    GENERATED = "generated"
    FALLBACK = "fallback"


class PipelineStage(str, Enum):
    """States of the segmentation state machine."""

    CHECK_CACHE = "check_cache"
    FETCH_BYTES = "fetch_bytes"
    EXTRACT = "extract"
    GENERATE = "generate"
    VALIDATE = "validate"
    FALLBACK = "fallback"
    PERSIST = "persist"
