"""Document store collaborator.

Raw document bytes live on disk under ``<root>/pdfs/<document_id>``. File
operations are async-friendly using aiofiles.
"""

import re
import uuid
from pathlib import Path
from typing import Protocol

import aiofiles
import aiofiles.os
import structlog

from roadmap.errors import DocumentNotFound, StorageUnavailable

logger = structlog.get_logger(__name__)

# Maximum upload size: 50MB
MAX_FILE_SIZE = 50 * 1024 * 1024
PDF_SIGNATURE = b"%PDF"

_FILENAME_SAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class DocumentStore(Protocol):
    """Capability the pipeline needs from document storage."""

    async def fetch_bytes(self, document_id: str) -> bytes:
        """Return stored bytes or raise DocumentNotFound / StorageUnavailable."""
        ...


class InvalidUpload(ValueError):
    """Uploaded bytes are not an acceptable PDF."""

    pass


def generate_id() -> str:
    """Generate a short unique prefix for stored documents."""
    return uuid.uuid4().hex[:12]


def sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename preserving the extension."""
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", Path(filename or "").name)
    return sanitized.strip("._") or "upload.pdf"


def validate_pdf(content: bytes) -> None:
    """Reject empty, oversized or non-PDF uploads.

    Raises:
        InvalidUpload: With a human-readable reason.
    """
    if not content:
        raise InvalidUpload("Empty file")
    if len(content) > MAX_FILE_SIZE:
        raise InvalidUpload(
            f"File too large. Maximum size is {MAX_FILE_SIZE // (1024 * 1024)}MB"
        )
    if not content.startswith(PDF_SIGNATURE):
        raise InvalidUpload("Invalid PDF file. File does not start with PDF signature.")


class LocalDocumentStore:
    """Filesystem-backed document store."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.documents_dir = self.root / "pdfs"

    def _path_for(self, document_id: str) -> Path:
        if not document_id or Path(document_id).name != document_id or document_id in (".", ".."):
            raise DocumentNotFound(f"Invalid document id: {document_id!r}")
        return self.documents_dir / document_id

    async def fetch_bytes(self, document_id: str) -> bytes:
        """Read a stored document."""
        path = self._path_for(document_id)

        if not await aiofiles.os.path.isfile(path):
            raise DocumentNotFound(f"Document not found: {document_id}")

        try:
            async with aiofiles.open(path, "rb") as f:
                content = await f.read()
        except OSError as e:
            logger.error("document_read_failed", document_id=document_id, error=str(e))
            raise StorageUnavailable(f"Failed to read document {document_id}: {e}") from e

        logger.debug("document_fetched", document_id=document_id, size_bytes=len(content))
        return content

    async def put_bytes(self, content: bytes, filename: str) -> str:
        """Validate and store an upload, returning its new document id."""
        validate_pdf(content)

        document_id = f"{generate_id()}_{sanitize_filename(filename)}"
        path = self._path_for(document_id)

        try:
            await aiofiles.os.makedirs(self.documents_dir, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            raise StorageUnavailable(f"Failed to store document: {e}") from e

        logger.info("document_stored", document_id=document_id, size_bytes=len(content))
        return document_id
