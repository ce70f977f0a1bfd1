"""LangGraph workflow for the segmentation state machine.

    check_cache --hit--> END
    check_cache --miss--> fetch_bytes -> extract -> generate -> validate -> persist -> END

Any failure in fetch_bytes, extract, generate or validate routes directly to
fallback -> persist. No edge leads back to an earlier stage.
"""

import asyncio
from typing import Callable, Protocol

import structlog
from langgraph.graph import END, START, StateGraph

from roadmap.errors import (
    ExtractionFailed,
    FetchFailed,
    GenerationUnavailable,
    MalformedResponse,
    PersistenceError,
)
from roadmap.extraction import extract_text
from roadmap.llm.prompt_builder import DEFAULT_MAX_CHARS, GenerationRequest, build_segmentation_request
from roadmap.llm.validation import validate_segmentation_response
from roadmap.models import PipelineStage
from roadmap.pipeline.fallback import fallback_segmentation
from roadmap.pipeline.state import SegmentationState
from roadmap.storage.cache import SegmentationCache
from roadmap.storage.documents import DocumentStore

logger = structlog.get_logger(__name__)


class TextGenerator(Protocol):
    """Capability the pipeline needs from the generation service."""

    async def generate(self, request: GenerationRequest) -> str:
        ...


def _stage_failed(stage: PipelineStage, error: Exception) -> dict:
    """State update that sends the run to fallback."""
    logger.warning(
        "stage_failed_using_fallback",
        stage=stage.value,
        error=str(error),
        error_type=type(error).__name__,
    )
    return {
        "failed_stage": stage.value,
        "fallback_reason": str(error) or type(error).__name__,
        "stages": [stage.value],
    }


def route_after_cache(state: SegmentationState) -> str:
    """End the run on a cache hit, otherwise fetch the document."""
    if state.get("cached") is not None:
        return "hit"
    return "miss"


def _route_unless_failed(next_stage: PipelineStage) -> Callable[[SegmentationState], str]:
    def route(state: SegmentationState) -> str:
        if state.get("failed_stage"):
            return PipelineStage.FALLBACK.value
        return next_stage.value

    return route


def build_segmentation_graph(
    documents: DocumentStore,
    generator: TextGenerator,
    cache: SegmentationCache,
    max_prompt_chars: int = DEFAULT_MAX_CHARS,
) -> StateGraph:
    """Build the LangGraph workflow with its collaborators bound into the nodes.

    Returns:
        Uncompiled StateGraph.
    """

    async def check_cache(state: SegmentationState) -> dict:
        try:
            existing = await cache.get(state["document_id"], state["owner_id"])
        except PersistenceError as e:
            # A broken read is treated as a miss; the write will surface it.
            logger.warning("segmentation_cache_read_failed", error=str(e))
            existing = None

        if existing is not None:
            logger.info(
                "segmentation_cache_hit",
                document_id=state["document_id"],
                segmentation_id=existing.id,
            )
        return {"cached": existing, "stages": [PipelineStage.CHECK_CACHE.value]}

    async def fetch_bytes(state: SegmentationState) -> dict:
        try:
            pdf_bytes = await documents.fetch_bytes(state["document_id"])
        except FetchFailed as e:
            return _stage_failed(PipelineStage.FETCH_BYTES, e)
        except Exception as e:
            logger.exception("fetch_bytes_unexpected_error")
            return _stage_failed(PipelineStage.FETCH_BYTES, e)

        return {"pdf_bytes": pdf_bytes, "stages": [PipelineStage.FETCH_BYTES.value]}

    async def extract(state: SegmentationState) -> dict:
        try:
            extracted = await asyncio.to_thread(extract_text, state["pdf_bytes"])
        except ExtractionFailed as e:
            return _stage_failed(PipelineStage.EXTRACT, e)
        except Exception as e:
            logger.exception("extract_unexpected_error")
            return _stage_failed(PipelineStage.EXTRACT, e)

        # The raw bytes are not needed past this point.
        return {"extracted": extracted, "pdf_bytes": None, "stages": [PipelineStage.EXTRACT.value]}

    async def generate(state: SegmentationState) -> dict:
        request = build_segmentation_request(
            state["extracted"].text,
            state["document_label"],
            max_chars=max_prompt_chars,
        )
        logger.info(
            "generation_start",
            document_label=request.document_label,
            text_length=request.text_length,
            truncated=request.truncated,
        )

        try:
            raw_response = await generator.generate(request)
        except GenerationUnavailable as e:
            return _stage_failed(PipelineStage.GENERATE, e)
        except Exception as e:
            logger.exception("generate_unexpected_error")
            return _stage_failed(PipelineStage.GENERATE, e)

        return {"raw_response": raw_response, "stages": [PipelineStage.GENERATE.value]}

    async def validate(state: SegmentationState) -> dict:
        try:
            body = validate_segmentation_response(state["raw_response"], state["document_label"])
        except MalformedResponse as e:
            return _stage_failed(PipelineStage.VALIDATE, e)
        except Exception as e:
            logger.exception("validate_unexpected_error")
            return _stage_failed(PipelineStage.VALIDATE, e)

        logger.info("generation_validated", segments=body.total_segments)
        return {"body": body, "stages": [PipelineStage.VALIDATE.value]}

    async def fallback(state: SegmentationState) -> dict:
        body = fallback_segmentation(state["document_label"])
        return {"body": body, "stages": [PipelineStage.FALLBACK.value]}

    async def persist(state: SegmentationState) -> dict:
        # PersistenceError propagates: a result that cannot be stored is a failed run.
        saved = await cache.put(state["document_id"], state["owner_id"], state["body"])
        return {"saved": saved, "stages": [PipelineStage.PERSIST.value]}

    workflow = StateGraph(SegmentationState)

    workflow.add_node(PipelineStage.CHECK_CACHE.value, check_cache)
    workflow.add_node(PipelineStage.FETCH_BYTES.value, fetch_bytes)
    workflow.add_node(PipelineStage.EXTRACT.value, extract)
    workflow.add_node(PipelineStage.GENERATE.value, generate)
    workflow.add_node(PipelineStage.VALIDATE.value, validate)
    workflow.add_node(PipelineStage.FALLBACK.value, fallback)
    workflow.add_node(PipelineStage.PERSIST.value, persist)

    workflow.add_edge(START, PipelineStage.CHECK_CACHE.value)

    workflow.add_conditional_edges(
        PipelineStage.CHECK_CACHE.value,
        route_after_cache,
        {
            "hit": END,
            "miss": PipelineStage.FETCH_BYTES.value,
        },
    )

    for stage, next_stage in (
        (PipelineStage.FETCH_BYTES, PipelineStage.EXTRACT),
        (PipelineStage.EXTRACT, PipelineStage.GENERATE),
        (PipelineStage.GENERATE, PipelineStage.VALIDATE),
        (PipelineStage.VALIDATE, PipelineStage.PERSIST),
    ):
        workflow.add_conditional_edges(
            stage.value,
            _route_unless_failed(next_stage),
            {
                next_stage.value: next_stage.value,
                PipelineStage.FALLBACK.value: PipelineStage.FALLBACK.value,
            },
        )

    workflow.add_edge(PipelineStage.FALLBACK.value, PipelineStage.PERSIST.value)
    workflow.add_edge(PipelineStage.PERSIST.value, END)

    return workflow
