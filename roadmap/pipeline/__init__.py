"""Pipeline orchestration module."""

from .fallback import fallback_segmentation
from .graph import build_segmentation_graph
from .outcomes import CacheHit, Computed, Fallback, PipelineOutcome
from .service import SegmentationService
from .state import SegmentationState, create_initial_state

__all__ = [
    "SegmentationState",
    "create_initial_state",
    "build_segmentation_graph",
    "fallback_segmentation",
    "CacheHit",
    "Computed",
    "Fallback",
    "PipelineOutcome",
    "SegmentationService",
]
