"""Segmentation cache backed by SQLAlchemy.

One row per (document_id, owner_id). Rows are inserted once and deleted
explicitly; there is no update path.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import ValidationError
from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from roadmap.errors import PersistenceError
from roadmap.models import Segmentation, SegmentationBody, SegmentationMethod

logger = structlog.get_logger(__name__)

Base = declarative_base()


class SegmentationRecord(Base):
    __tablename__ = "document_segments"
    __table_args__ = (
        UniqueConstraint("document_id", "owner_id", name="uq_document_segments_document_owner"),
    )

    id = Column(String(32), primary_key=True)
    document_id = Column(String(255), nullable=False, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    title = Column(Text, nullable=False, default="")
    overview = Column(Text, nullable=False, default="")
    segments_json = Column(Text, nullable=False)
    total_segments = Column(Integer, nullable=False)
    estimated_total_time = Column(String(100), nullable=False, default="")
    segmentation_method = Column(
        Enum(*[m.value for m in SegmentationMethod], name="segmentation_method"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return (
            f"<SegmentationRecord(id={self.id!r}, document_id={self.document_id!r}, "
            f"owner_id={self.owner_id!r})>"
        )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _to_segmentation(record: SegmentationRecord) -> Segmentation:
    try:
        return Segmentation(
            id=record.id,
            document_id=record.document_id,
            owner_id=record.owner_id,
            title=record.title,
            overview=record.overview,
            segments=json.loads(record.segments_json),
            estimated_total_time=record.estimated_total_time,
            method=record.segmentation_method,
            created_at=_as_utc(record.created_at),
            updated_at=_as_utc(record.updated_at),
        )
    except (ValueError, ValidationError) as e:
        raise PersistenceError(f"Stored segmentation {record.id} is corrupt: {e}") from e


class SegmentationCache:
    """get/put/delete of segmentations keyed by (document_id, owner_id).

    Blocking database work runs in a worker thread so callers can await it.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._sessions = sessionmaker(
            bind=engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    def init_schema(self) -> None:
        """Create the table if it doesn't exist."""
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not initialize segmentation store: {e}") from e

    async def get(self, document_id: str, owner_id: str) -> Segmentation | None:
        """Return the stored segmentation, or None when there is none."""
        return await asyncio.to_thread(self._get, document_id, owner_id)

    async def put(self, document_id: str, owner_id: str, body: SegmentationBody) -> Segmentation:
        """Persist a new segmentation, assigning id and timestamps.

        If another writer stored a segmentation for the same pair first, that
        stored segmentation is returned instead.
        """
        return await asyncio.to_thread(self._put, document_id, owner_id, body)

    async def delete(self, document_id: str, owner_id: str) -> bool:
        """Remove the entry if present. Returns whether a row was deleted."""
        return await asyncio.to_thread(self._delete, document_id, owner_id)

    def _select(self, session, document_id: str, owner_id: str) -> SegmentationRecord | None:
        stmt = select(SegmentationRecord).where(
            SegmentationRecord.document_id == document_id,
            SegmentationRecord.owner_id == owner_id,
        )
        return session.execute(stmt).scalars().first()

    def _get(self, document_id: str, owner_id: str) -> Segmentation | None:
        try:
            with self._sessions() as session:
                record = self._select(session, document_id, owner_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Segmentation lookup failed: {e}") from e

        return _to_segmentation(record) if record is not None else None

    def _put(self, document_id: str, owner_id: str, body: SegmentationBody) -> Segmentation:
        now = datetime.now(timezone.utc)
        record = SegmentationRecord(
            id=uuid.uuid4().hex,
            document_id=document_id,
            owner_id=owner_id,
            title=body.title,
            overview=body.overview,
            segments_json=json.dumps(
                [segment.model_dump(mode="json", by_alias=True) for segment in body.segments]
            ),
            total_segments=body.total_segments,
            estimated_total_time=body.estimated_total_time,
            segmentation_method=body.method.value,
            created_at=now,
            updated_at=now,
        )

        try:
            with self._sessions.begin() as session:
                session.add(record)
        except IntegrityError:
            logger.warning(
                "segmentation_write_conflict",
                document_id=document_id,
                owner_id=owner_id,
            )
            existing = self._get(document_id, owner_id)
            if existing is None:
                raise PersistenceError("Segmentation write conflicted but no stored row was found")
            return existing
        except SQLAlchemyError as e:
            logger.error("segmentation_save_failed", document_id=document_id, error=str(e))
            raise PersistenceError(f"Database save failed: {e}") from e

        logger.info(
            "segmentation_saved",
            segmentation_id=record.id,
            document_id=document_id,
            method=record.segmentation_method,
        )
        return _to_segmentation(record)

    def _delete(self, document_id: str, owner_id: str) -> bool:
        stmt = delete(SegmentationRecord).where(
            SegmentationRecord.document_id == document_id,
            SegmentationRecord.owner_id == owner_id,
        )
        try:
            with self._sessions.begin() as session:
                result = session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Segmentation delete failed: {e}") from e

        deleted = result.rowcount > 0
        logger.info("segmentation_deleted", document_id=document_id, deleted=deleted)
        return deleted


def create_segmentation_cache(database_url: str, init_schema: bool = True) -> SegmentationCache:
    """Build a cache for the given SQLAlchemy URL, creating SQLite parent dirs."""
    url = make_url(database_url)
    connect_args = {}

    if url.get_backend_name() == "sqlite":
        # Worker threads share the engine.
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, connect_args=connect_args)
    cache = SegmentationCache(engine)

    if init_schema:
        cache.init_schema()

    return cache
