"""Terminal outcomes of a segmentation run."""

from dataclasses import dataclass, field

from roadmap.models import PipelineStage, Segmentation


@dataclass(frozen=True)
class CacheHit:
    """An existing segmentation was served without external calls."""

    segmentation: Segmentation
    stages: tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class Computed:
    """A generated segmentation was validated and persisted."""

    segmentation: Segmentation
    stages: tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class Fallback:
    """A stage failed and the fallback segmentation was persisted."""

    segmentation: Segmentation
    failed_stage: PipelineStage
    reason: str
    stages: tuple[str, ...] = field(default=())


PipelineOutcome = CacheHit | Computed | Fallback
