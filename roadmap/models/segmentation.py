"""Models for learning-roadmap segmentations.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON the generation service is asked to produce.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .enums import Difficulty, SegmentationMethod


class Segment(BaseModel):
    """One ordered topic unit within a segmentation."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    id: int = Field(..., ge=1, description="1-based position within the segmentation")
    title: str = Field(..., min_length=1, description="Topic title")
    description: str = Field(..., min_length=1, description="What the learner will understand")
    key_points: list[str] = Field(..., alias="keyPoints", min_length=1)
    difficulty: Difficulty
    estimated_time: str = Field(..., alias="estimatedTime", description="e.g. '5-10 minutes'")
    learning_objectives: list[str] = Field(..., alias="learningObjectives", min_length=1)


class SegmentationBody(BaseModel):
    """A segmentation without identity or timestamps."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str = Field(default="", description="Document/course title")
    overview: str = Field(default="", description="What the learner will achieve")
    segments: list[Segment] = Field(..., min_length=1, description="Segments in learning order")
    estimated_total_time: str = Field(default="", alias="estimatedTotalTime")
    method: SegmentationMethod = Field(..., description="Path that produced this body")

    @computed_field(alias="totalSegments")  # type: ignore[prop-decorator]
    @property
    def total_segments(self) -> int:
        """Always the actual number of segments."""
        return len(self.segments)

    @model_validator(mode="after")
    def _check_segment_order(self) -> "SegmentationBody":
        ids = [segment.id for segment in self.segments]
        if ids != list(range(1, len(ids) + 1)):
            raise ValueError(f"segment ids must be 1..{len(ids)} in order, got {ids}")
        return self


class Segmentation(SegmentationBody):
    """A persisted segmentation for one (document, owner) pair."""

    id: str = Field(..., description="Opaque segmentation identifier")
    document_id: str = Field(..., alias="documentId")
    owner_id: str = Field(..., alias="ownerId")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    def body(self) -> SegmentationBody:
        """Strip identity and timestamps."""
        return SegmentationBody(
            title=self.title,
            overview=self.overview,
            segments=self.segments,
            estimated_total_time=self.estimated_total_time,
            method=self.method,
        )
