"""Segmentation service: the inbound interface of the pipeline.

``run`` executes the state machine and returns a tagged outcome; ``segment``,
``get_segments`` and ``delete_segments`` wrap results in response envelopes.
"""

import structlog

from roadmap.config.settings import Settings, get_settings
from roadmap.errors import InvalidRequest, PersistenceError
from roadmap.llm.client import GenerationClient, LLMSettings
from roadmap.llm.prompt_builder import DEFAULT_MAX_CHARS
from roadmap.models import (
    ErrorEnvelope,
    MessageEnvelope,
    PipelineStage,
    SegmentationData,
    SegmentationEnvelope,
)
from roadmap.pipeline.graph import TextGenerator, build_segmentation_graph
from roadmap.pipeline.outcomes import CacheHit, Computed, Fallback, PipelineOutcome
from roadmap.pipeline.state import create_initial_state
from roadmap.storage.cache import SegmentationCache, create_segmentation_cache
from roadmap.storage.documents import DocumentStore, LocalDocumentStore

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ["documentId", "ownerId"]

_FALLBACK_WARNINGS = {
    PipelineStage.FETCH_BYTES: "Document could not be retrieved, using basic segmentation",
    PipelineStage.EXTRACT: "PDF text extraction had issues, using basic segmentation",
    PipelineStage.GENERATE: "AI segmentation was unavailable, using basic segmentation",
    PipelineStage.VALIDATE: "AI segmentation returned an unusable result, using basic segmentation",
}


def _require_ids(document_id: str | None, owner_id: str | None) -> None:
    missing = [
        name
        for name, value in zip(REQUIRED_FIELDS, (document_id, owner_id))
        if not value or not str(value).strip()
    ]
    if missing:
        raise InvalidRequest(missing)


def _rejected(error: InvalidRequest) -> ErrorEnvelope:
    logger.info("segmentation_request_rejected", missing=error.missing)
    return ErrorEnvelope(
        error="Missing required fields",
        message=str(error),
        required=list(REQUIRED_FIELDS),
    )


class SegmentationService:
    """Cache-or-compute-or-fallback segmentation over injected collaborators."""

    def __init__(
        self,
        documents: DocumentStore,
        generator: TextGenerator,
        cache: SegmentationCache,
        max_prompt_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.documents = documents
        self.generator = generator
        self.cache = cache
        self._app = build_segmentation_graph(
            documents=documents,
            generator=generator,
            cache=cache,
            max_prompt_chars=max_prompt_chars,
        ).compile()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        llm_settings: LLMSettings | None = None,
    ) -> "SegmentationService":
        """Wire the default local store, SQL cache and Ollama client."""
        settings = settings or get_settings()
        return cls(
            documents=LocalDocumentStore(settings.storage_dir),
            generator=GenerationClient.from_settings(llm_settings),
            cache=create_segmentation_cache(settings.database_url),
            max_prompt_chars=settings.prompt_max_chars,
        )

    async def run(self, document_id: str, owner_id: str) -> PipelineOutcome:
        """Execute one segmentation run.

        Raises:
            InvalidRequest: If either identifier is missing.
            PersistenceError: If the result could not be stored.
        """
        _require_ids(document_id, owner_id)

        logger.info("segmentation_start", document_id=document_id, owner_id=owner_id)

        final = await self._app.ainvoke(create_initial_state(document_id, owner_id))
        stages = tuple(final.get("stages", []))

        if final.get("cached") is not None:
            return CacheHit(segmentation=final["cached"], stages=stages)

        saved = final["saved"]

        if final.get("failed_stage"):
            outcome = Fallback(
                segmentation=saved,
                failed_stage=PipelineStage(final["failed_stage"]),
                reason=final.get("fallback_reason") or "",
                stages=stages,
            )
        else:
            outcome = Computed(segmentation=saved, stages=stages)

        logger.info(
            "segmentation_complete",
            document_id=document_id,
            segmentation_id=saved.id,
            method=saved.method.value,
            segments=saved.total_segments,
        )
        return outcome

    async def segment(self, document_id: str, owner_id: str) -> SegmentationEnvelope | ErrorEnvelope:
        """Return the document's segmentation, computing it if necessary."""
        try:
            outcome = await self.run(document_id, owner_id)
        except InvalidRequest as e:
            return _rejected(e)
        except PersistenceError as e:
            logger.error("segmentation_failed", document_id=document_id, error=str(e))
            return ErrorEnvelope(error="Segmentation failed", message=str(e))

        data = SegmentationData.from_segmentation(outcome.segmentation)

        if isinstance(outcome, CacheHit):
            return SegmentationEnvelope(
                message="Using cached segmentation (instant)",
                cached=True,
                data=data,
            )

        if isinstance(outcome, Fallback):
            return SegmentationEnvelope(
                message="Segmented with fallback method",
                cached=False,
                warning=_FALLBACK_WARNINGS.get(outcome.failed_stage),
                fallback_reason=outcome.failed_stage.value,
                data=data,
            )

        return SegmentationEnvelope(
            message="Document segmented successfully",
            cached=False,
            data=data,
        )

    async def get_segments(self, document_id: str, owner_id: str) -> SegmentationEnvelope | ErrorEnvelope:
        """Return the stored segmentation without computing one."""
        try:
            _require_ids(document_id, owner_id)
            existing = await self.cache.get(document_id, owner_id)
        except InvalidRequest as e:
            return _rejected(e)
        except PersistenceError as e:
            logger.error("get_segments_failed", document_id=document_id, error=str(e))
            return ErrorEnvelope(error="Failed to retrieve segments", message=str(e))

        if existing is None:
            return ErrorEnvelope(
                error="Segmentation not found",
                message="This document has not been segmented yet",
            )

        return SegmentationEnvelope(
            message="Segmentation found",
            data=SegmentationData.from_segmentation(existing, detailed=True),
        )

    async def delete_segments(self, document_id: str, owner_id: str) -> MessageEnvelope | ErrorEnvelope:
        """Delete the stored segmentation; deleting nothing also succeeds."""
        try:
            _require_ids(document_id, owner_id)
            await self.cache.delete(document_id, owner_id)
        except InvalidRequest as e:
            return _rejected(e)
        except PersistenceError as e:
            logger.error("delete_segments_failed", document_id=document_id, error=str(e))
            return ErrorEnvelope(error="Failed to delete segments", message=str(e))

        return MessageEnvelope(message="Segmentation deleted successfully")
