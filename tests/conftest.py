"""Pytest configuration and fixtures."""

import json

import pytest

from roadmap.errors import DocumentNotFound
from roadmap.pipeline.service import SegmentationService
from roadmap.storage.cache import create_segmentation_cache


def _escape_pdf_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def make_pdf(page_texts: list[str]) -> bytes:
    """Build a minimal PDF with one line of Helvetica text per page."""
    page_ids = [4 + 2 * i for i in range(len(page_texts))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(page_texts)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for pid, text in zip(page_ids, page_texts):
        objects.append(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents {pid + 1} 0 R "
            f"/Resources << /Font << /F1 3 0 R >> >> >>".encode()
        )
        stream = f"BT /F1 12 Tf 72 700 Td ({_escape_pdf_text(text)}) Tj ET".encode()
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n"
    ).encode()
    return bytes(out)


def make_segment(position: int, difficulty: str = "beginner") -> dict:
    return {
        "id": position,
        "title": f"Topic {position}",
        "description": f"What you will learn in topic {position}",
        "keyPoints": [f"Point {position}.1", f"Point {position}.2"],
        "difficulty": difficulty,
        "estimatedTime": "5-10 minutes",
        "learningObjectives": [f"Understand topic {position}"],
    }


class FakeDocumentStore:
    """In-memory document store that records fetches."""

    def __init__(self, documents: dict[str, bytes] | None = None, error: Exception | None = None):
        self.documents = documents or {}
        self.error = error
        self.fetch_calls: list[str] = []

    async def fetch_bytes(self, document_id: str) -> bytes:
        self.fetch_calls.append(document_id)
        if self.error is not None:
            raise self.error
        try:
            return self.documents[document_id]
        except KeyError:
            raise DocumentNotFound(f"Document not found: {document_id}") from None


class FakeGenerator:
    """Generation service stand-in returning canned responses in order."""

    def __init__(self, responses: list[str] | None = None, error: Exception | None = None):
        self.responses = list(responses or [])
        self.error = error
        self.requests = []

    async def generate(self, request) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


@pytest.fixture
def lecture_pdf() -> bytes:
    """Two-page PDF with extractable text."""
    return make_pdf([
        "Photosynthesis converts light energy into chemical energy",
        "The Calvin cycle fixes carbon dioxide",
    ])


@pytest.fixture
def five_segment_payload() -> dict:
    """Valid generation payload with five segments."""
    difficulties = ["beginner", "beginner", "intermediate", "intermediate", "advanced"]
    return {
        "title": "Photosynthesis",
        "overview": "From light capture to carbon fixation.",
        "segments": [make_segment(i, d) for i, d in enumerate(difficulties, start=1)],
        "totalSegments": 5,
        "estimatedTotalTime": "40-60 minutes",
    }


@pytest.fixture
def five_segment_response(five_segment_payload: dict) -> str:
    return json.dumps(five_segment_payload)


@pytest.fixture
def cache(tmp_path):
    """SQLite-backed segmentation cache in a temporary directory."""
    return create_segmentation_cache(f"sqlite:///{tmp_path / 'segments.db'}")


@pytest.fixture
def make_service(cache):
    """Factory for a service wired to fakes and the temporary cache."""

    def _make(documents=None, generator=None, segmentation_cache=None, **kwargs):
        return SegmentationService(
            documents=documents or FakeDocumentStore(),
            generator=generator or FakeGenerator(),
            cache=segmentation_cache or cache,
            **kwargs,
        )

    return _make
