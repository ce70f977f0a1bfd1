"""Document storage and segmentation cache collaborators."""

from .cache import SegmentationCache, SegmentationRecord, create_segmentation_cache
from .documents import (
    DocumentStore,
    InvalidUpload,
    LocalDocumentStore,
    validate_pdf,
)

__all__ = [
    "SegmentationCache",
    "SegmentationRecord",
    "create_segmentation_cache",
    "DocumentStore",
    "InvalidUpload",
    "LocalDocumentStore",
    "validate_pdf",
]
