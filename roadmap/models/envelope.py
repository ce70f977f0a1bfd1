"""Response envelopes returned to callers of the segmentation service."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .enums import SegmentationMethod
from .segmentation import Segment, Segmentation

FREE_COST_LABEL = "$0.00 (free)"


class _Envelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with wire names, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SegmentationData(_Envelope):
    """Segmentation as presented to the caller."""

    id: str
    document_id: str | None = Field(None, alias="documentId")
    title: str
    overview: str
    segments: list[Segment]
    total_segments: int = Field(..., alias="totalSegments")
    estimated_time: str = Field(..., alias="estimatedTime")
    method: SegmentationMethod
    cost: str = FREE_COST_LABEL
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    @classmethod
    def from_segmentation(cls, segmentation: Segmentation, detailed: bool = False) -> "SegmentationData":
        """Build envelope data; ``detailed`` adds documentId and updatedAt."""
        return cls(
            id=segmentation.id,
            document_id=segmentation.document_id if detailed else None,
            title=segmentation.title,
            overview=segmentation.overview,
            segments=segmentation.segments,
            total_segments=segmentation.total_segments,
            estimated_time=segmentation.estimated_total_time,
            method=segmentation.method,
            created_at=segmentation.created_at,
            updated_at=segmentation.updated_at if detailed else None,
        )


class SegmentationEnvelope(_Envelope):
    """Successful segmentation response."""

    success: Literal[True] = True
    message: str
    cached: bool | None = None
    warning: str | None = None
    fallback_reason: str | None = Field(None, alias="fallbackReason")
    data: SegmentationData


class MessageEnvelope(_Envelope):
    """Successful response without a payload."""

    success: Literal[True] = True
    message: str


class ErrorEnvelope(_Envelope):
    """Failure response."""

    success: Literal[False] = False
    error: str
    message: str | None = None
    required: list[str] | None = None
