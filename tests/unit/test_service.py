"""Tests for the segmentation service and its state machine."""

import json

import pytest
from sqlalchemy import create_engine

from roadmap.errors import GenerationUnavailable, InvalidRequest, PersistenceError, StorageUnavailable
from roadmap.models import PipelineStage, SegmentationMethod
from roadmap.pipeline import CacheHit, Computed, Fallback
from roadmap.storage.cache import SegmentationCache
from tests.conftest import FakeDocumentStore, FakeGenerator, make_segment

DOC = "lecture.pdf"
OWNER = "user-1"

COMPUTED_STAGES = ("check_cache", "fetch_bytes", "extract", "generate", "validate", "persist")


class WriteFailingCache(SegmentationCache):
    """Cache whose reads work but whose writes always fail."""

    async def put(self, document_id, owner_id, body):
        raise PersistenceError("disk full")


class ReadFailingCache(SegmentationCache):
    """Cache whose lookups and deletes fail but whose writes work."""

    async def get(self, document_id, owner_id):
        raise PersistenceError("connection reset")

    async def delete(self, document_id, owner_id):
        raise PersistenceError("connection reset")


@pytest.fixture
def documents(lecture_pdf):
    return FakeDocumentStore({DOC: lecture_pdf})


class TestComputed:
    """Runs where generation succeeds."""

    async def test_valid_generation(self, make_service, documents, five_segment_response):
        generator = FakeGenerator([five_segment_response])
        service = make_service(documents=documents, generator=generator)

        envelope = await service.segment(DOC, OWNER)

        assert envelope.success is True
        assert envelope.cached is False
        assert envelope.message == "Document segmented successfully"
        assert envelope.data.method == SegmentationMethod.GENERATED
        assert envelope.data.total_segments == 5
        assert [s.id for s in envelope.data.segments] == [1, 2, 3, 4, 5]
        assert envelope.warning is None

    async def test_prompt_contains_page_marked_text(self, make_service, documents, five_segment_response):
        generator = FakeGenerator([five_segment_response])
        await make_service(documents=documents, generator=generator).run(DOC, OWNER)

        request = generator.requests[0]
        prompt = request.messages[-1].content
        assert "[PAGE 1]" in prompt
        assert "[PAGE 2]" in prompt
        assert "Calvin cycle" in prompt
        assert request.document_label == DOC

    async def test_fenced_response_accepted(self, make_service, documents, five_segment_response):
        fenced = f"```json\n{five_segment_response}\n```"
        service = make_service(documents=documents, generator=FakeGenerator([fenced]))

        outcome = await service.run(DOC, OWNER)

        assert isinstance(outcome, Computed)
        assert outcome.segmentation.total_segments == 5
        assert outcome.stages == COMPUTED_STAGES

    async def test_missing_title_uses_document_label(self, make_service, documents):
        payload = {"segments": [make_segment(1), make_segment(2)]}
        service = make_service(documents=documents, generator=FakeGenerator([json.dumps(payload)]))

        outcome = await service.run(DOC, OWNER)

        assert isinstance(outcome, Computed)
        assert outcome.segmentation.title == DOC

    async def test_wire_format(self, make_service, documents, five_segment_response):
        service = make_service(documents=documents, generator=FakeGenerator([five_segment_response]))

        payload = (await service.segment(DOC, OWNER)).to_dict()

        assert payload["success"] is True
        assert payload["cached"] is False
        assert payload["data"]["totalSegments"] == 5
        assert payload["data"]["estimatedTime"] == "40-60 minutes"
        assert payload["data"]["cost"] == "$0.00 (free)"
        assert "keyPoints" in payload["data"]["segments"][0]
        assert "fallbackReason" not in payload


class TestFallback:
    """Runs where a stage fails and the fixed segmentation is used."""

    async def test_unparseable_document(self, make_service):
        generator = FakeGenerator()
        service = make_service(
            documents=FakeDocumentStore({DOC: b"this is not a pdf"}),
            generator=generator,
        )

        outcome = await service.run(DOC, OWNER)

        assert isinstance(outcome, Fallback)
        assert outcome.failed_stage == PipelineStage.EXTRACT
        assert outcome.segmentation.method == SegmentationMethod.FALLBACK
        assert outcome.segmentation.total_segments == 4
        assert outcome.stages == ("check_cache", "fetch_bytes", "extract", "fallback", "persist")
        assert generator.requests == []

    async def test_missing_segments(self, make_service, documents):
        response = json.dumps({"title": "T", "overview": "O"})
        service = make_service(documents=documents, generator=FakeGenerator([response]))

        envelope = await service.segment(DOC, OWNER)

        assert envelope.success is True
        assert envelope.cached is False
        assert envelope.message == "Segmented with fallback method"
        assert envelope.fallback_reason == "validate"
        assert envelope.warning
        assert envelope.data.method == SegmentationMethod.FALLBACK
        assert envelope.data.total_segments == 4

    async def test_garbage_response(self, make_service, documents):
        service = make_service(documents=documents, generator=FakeGenerator(["I cannot help with that."]))

        outcome = await service.run(DOC, OWNER)

        assert isinstance(outcome, Fallback)
        assert outcome.failed_stage == PipelineStage.VALIDATE

    async def test_generation_unavailable(self, make_service, documents):
        generator = FakeGenerator(error=GenerationUnavailable("timed out"))
        service = make_service(documents=documents, generator=generator)

        outcome = await service.run(DOC, OWNER)

        assert isinstance(outcome, Fallback)
        assert outcome.failed_stage == PipelineStage.GENERATE
        assert outcome.reason == "timed out"
        assert len(generator.requests) == 1

    async def test_document_not_found(self, make_service):
        generator = FakeGenerator()
        service = make_service(documents=FakeDocumentStore(), generator=generator)

        outcome = await service.run("missing.pdf", OWNER)

        assert isinstance(outcome, Fallback)
        assert outcome.failed_stage == PipelineStage.FETCH_BYTES
        assert outcome.segmentation.title == "missing"
        assert outcome.stages == ("check_cache", "fetch_bytes", "fallback", "persist")
        assert generator.requests == []

    async def test_storage_unavailable(self, make_service):
        documents = FakeDocumentStore(error=StorageUnavailable("bucket offline"))
        service = make_service(documents=documents)

        envelope = await service.segment(DOC, OWNER)

        assert envelope.success is True
        assert envelope.fallback_reason == "fetch_bytes"

    async def test_fallback_result_is_cached(self, make_service):
        service = make_service(documents=FakeDocumentStore())

        first = await service.run("missing.pdf", OWNER)
        second = await service.run("missing.pdf", OWNER)

        assert isinstance(second, CacheHit)
        assert second.segmentation == first.segmentation


class TestStageTrace:
    """Stage names recorded by runs."""

    async def test_every_stage_is_reachable(self, make_service, documents, five_segment_response):
        computed = await make_service(
            documents=documents,
            generator=FakeGenerator([five_segment_response]),
        ).run(DOC, OWNER)
        fallback = await make_service(documents=FakeDocumentStore()).run("missing.pdf", OWNER)

        assert set(computed.stages) | set(fallback.stages) == {stage.value for stage in PipelineStage}


class TestCache:
    """Cache hits and idempotence."""

    async def test_second_request_served_from_cache(self, make_service, documents, five_segment_response):
        generator = FakeGenerator([five_segment_response])
        service = make_service(documents=documents, generator=generator)

        first = await service.segment(DOC, OWNER)
        second = await service.segment(DOC, OWNER)

        assert second.cached is True
        assert second.message == "Using cached segmentation (instant)"
        assert second.data == first.data
        assert len(documents.fetch_calls) == 1
        assert len(generator.requests) == 1

    async def test_cache_hit_visits_only_cache(self, make_service, documents, five_segment_response):
        service = make_service(documents=documents, generator=FakeGenerator([five_segment_response]))
        await service.run(DOC, OWNER)

        outcome = await service.run(DOC, OWNER)

        assert isinstance(outcome, CacheHit)
        assert outcome.stages == ("check_cache",)

    async def test_owners_are_isolated(self, make_service, documents, five_segment_response):
        generator = FakeGenerator([five_segment_response, five_segment_response])
        service = make_service(documents=documents, generator=generator)

        first = await service.run(DOC, "user-1")
        second = await service.run(DOC, "user-2")

        assert isinstance(second, Computed)
        assert second.segmentation.id != first.segmentation.id


class TestPersistenceFailure:
    """A result that cannot be stored fails the run."""

    async def test_write_failure(self, make_service, documents, five_segment_response, cache):
        failing = WriteFailingCache(cache._engine)
        service = make_service(
            documents=documents,
            generator=FakeGenerator([five_segment_response]),
            segmentation_cache=failing,
        )

        with pytest.raises(PersistenceError):
            await service.run(DOC, OWNER)

        envelope = await make_service(
            documents=documents,
            generator=FakeGenerator([five_segment_response]),
            segmentation_cache=failing,
        ).segment(DOC, OWNER)

        assert envelope.success is False
        assert envelope.error == "Segmentation failed"
        assert "disk full" in envelope.message
        assert await cache.get(DOC, OWNER) is None

    async def test_unreachable_store(self, make_service, documents, five_segment_response, tmp_path):
        unreachable = SegmentationCache(create_engine(f"sqlite:///{tmp_path / 'missing' / 'x.db'}"))
        service = make_service(
            documents=documents,
            generator=FakeGenerator([five_segment_response]),
            segmentation_cache=unreachable,
        )

        envelope = await service.segment(DOC, OWNER)

        assert envelope.success is False
        assert envelope.error == "Segmentation failed"


class TestRequestValidation:
    """Missing identifiers are rejected before any stage runs."""

    @pytest.mark.parametrize(("document_id", "owner_id"), [("", OWNER), (DOC, ""), (None, None), ("  ", OWNER)])
    async def test_rejected(self, make_service, documents, document_id, owner_id):
        service = make_service(documents=documents)

        envelope = await service.segment(document_id, owner_id)

        assert envelope.success is False
        assert envelope.error == "Missing required fields"
        assert envelope.required == ["documentId", "ownerId"]
        assert documents.fetch_calls == []

    async def test_run_raises(self, make_service):
        with pytest.raises(InvalidRequest) as exc_info:
            await make_service().run(DOC, None)
        assert exc_info.value.missing == ["ownerId"]


class TestGetAndDelete:
    """get_segments and delete_segments."""

    async def test_get_not_found(self, make_service):
        envelope = await make_service().get_segments(DOC, OWNER)

        assert envelope.success is False
        assert envelope.error == "Segmentation not found"
        assert envelope.message == "This document has not been segmented yet"

    async def test_get_after_segment(self, make_service, documents, five_segment_response):
        service = make_service(documents=documents, generator=FakeGenerator([five_segment_response]))
        segmented = await service.segment(DOC, OWNER)

        envelope = await service.get_segments(DOC, OWNER)

        assert envelope.success is True
        assert envelope.message == "Segmentation found"
        assert envelope.data.id == segmented.data.id
        assert envelope.data.document_id == DOC
        assert envelope.data.updated_at is not None

    async def test_get_does_not_compute(self, make_service, documents):
        service = make_service(documents=documents)
        await service.get_segments(DOC, OWNER)
        assert documents.fetch_calls == []

    async def test_delete_then_recompute(self, make_service, documents, five_segment_response):
        generator = FakeGenerator([five_segment_response, five_segment_response])
        service = make_service(documents=documents, generator=generator)
        first = await service.run(DOC, OWNER)

        deleted = await service.delete_segments(DOC, OWNER)
        missing = await service.get_segments(DOC, OWNER)
        second = await service.run(DOC, OWNER)

        assert deleted.success is True
        assert deleted.message == "Segmentation deleted successfully"
        assert missing.success is False
        assert isinstance(second, Computed)
        assert second.segmentation.id != first.segmentation.id

    async def test_delete_nothing_succeeds(self, make_service):
        envelope = await make_service().delete_segments(DOC, OWNER)
        assert envelope.success is True


class TestCacheReadFailure:
    """Lookup and delete failures on the cache."""

    async def test_segment_treats_read_failure_as_miss(
        self, make_service, documents, five_segment_response, cache
    ):
        generator = FakeGenerator([five_segment_response])
        service = make_service(
            documents=documents,
            generator=generator,
            segmentation_cache=ReadFailingCache(cache._engine),
        )

        outcome = await service.run(DOC, OWNER)

        assert isinstance(outcome, Computed)
        assert outcome.stages == COMPUTED_STAGES
        assert len(generator.requests) == 1
        stored = await cache.get(DOC, OWNER)
        assert stored is not None
        assert stored.id == outcome.segmentation.id

    async def test_get_segments_reports_read_failure(self, make_service, documents, cache):
        service = make_service(documents=documents, segmentation_cache=ReadFailingCache(cache._engine))

        envelope = await service.get_segments(DOC, OWNER)

        assert envelope.success is False
        assert envelope.error == "Failed to retrieve segments"
        assert "connection reset" in envelope.message
        assert documents.fetch_calls == []

    async def test_delete_segments_reports_failure(self, make_service, cache):
        service = make_service(segmentation_cache=ReadFailingCache(cache._engine))

        envelope = await service.delete_segments(DOC, OWNER)

        assert envelope.success is False
        assert envelope.error == "Failed to delete segments"
        assert "connection reset" in envelope.message
