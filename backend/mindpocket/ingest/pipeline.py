"""Ingestion orchestration: fast admission, slow background processing.

Admission creates a ``pending`` bookmark and hands an :class:`IngestJob` to
a dispatcher. The worker side (:class:`IngestProcessor`) drives the record
through ``processing`` to ``completed`` or ``failed`` and schedules
embedding regeneration after a successful conversion.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.db import SessionFactory, session_scope
from ..core.metrics import record_submission, record_task_result
from ..core.s3 import BlobStore, build_ingest_key
from ..models import Bookmark
from .auto_folder import owned_folder, resolve_folder_for_ingest
from .classifier import classify
from .converters.engine import ConverterEngine
from .converters.text import extract_description
from .embeddings import Embedder, regenerate_embeddings
from .errors import IngestValidationError
from .types import (
    BookmarkType,
    ClientSource,
    ConversionResult,
    IngestStatus,
    SourceType,
    file_extension_of,
    infer_type_from_extension,
    infer_type_from_url,
)

logger = logging.getLogger(__name__)

EMPTY_RESULT_ERROR = "Conversion returned empty result"
EMPTY_HTML_RESULT_ERROR = "HTML conversion returned empty result"
TIMED_OUT_ERROR = "Ingestion timed out"
UNTITLED = "Untitled"


@dataclass(slots=True)
class IngestJob:
    """Everything the background worker needs to process one bookmark."""

    bookmark_id: str
    user_id: str
    source_type: str
    url: str | None = None
    html: str | None = None
    file_name: str | None = None
    title: str | None = None
    auto_folder: bool = False

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IngestJob":
        return cls(**payload)


@dataclass(slots=True)
class IngestAcknowledgement:
    bookmark_id: uuid.UUID
    title: str
    type: str
    status: str = IngestStatus.PENDING.value


class Dispatcher(Protocol):
    def enqueue_ingest(self, job: IngestJob) -> None:
        ...

    def enqueue_embeddings(self, bookmark_id: str) -> None:
        ...


class CeleryDispatcher:
    """Send jobs to the Celery workers by task name."""

    def __init__(self, app=None) -> None:
        if app is None:
            from ..workers.celery_app import celery_app as app
        self.app = app

    def enqueue_ingest(self, job: IngestJob) -> None:
        self.app.send_task("workers.process_ingest", args=[job.to_payload()])

    def enqueue_embeddings(self, bookmark_id: str) -> None:
        self.app.send_task("workers.generate_embeddings", args=[bookmark_id])


def transition(
    bookmark: Bookmark,
    status: IngestStatus,
    *,
    error: object | None = None,
    content: str | None = None,
) -> None:
    """Apply a guarded status change and log it."""

    previous = bookmark.ingest_status
    bookmark.transition_to(status, error=error, content=content)
    logger.info("Bookmark %s: %s -> %s", bookmark.id, previous, bookmark.ingest_status)


def file_too_large() -> IngestValidationError:
    limit_mb = settings.UPLOAD_MAX_BYTES // (1024 * 1024)
    return IngestValidationError("file_too_large", f"File exceeds the {limit_mb} MB limit")


def validate_upload(file_name: str | None, data: bytes | None) -> str:
    """Check an uploaded file and return its lowercase extension."""

    if not file_name or data is None:
        raise IngestValidationError("no_file", "No file provided")
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise file_too_large()
    extension = file_extension_of(file_name)
    if extension not in settings.UPLOAD_ALLOWED_EXTENSIONS:
        raise IngestValidationError("unsupported_file_type", f"Unsupported file type: {extension or file_name}")
    return extension


class IngestionService:
    """Admission phase: validate, record as ``pending`` and dispatch."""

    def __init__(self, session: Session, *, blob_store: BlobStore, dispatcher: Dispatcher) -> None:
        self.session = session
        self.blob_store = blob_store
        self.dispatcher = dispatcher

    def ingest_from_url(
        self,
        user_id: uuid.UUID,
        *,
        url: str,
        client_source: ClientSource | str,
        folder_id: str | None = None,
        title: str | None = None,
    ) -> IngestAcknowledgement:
        folder = self._check_folder(user_id, folder_id)
        bookmark = Bookmark(
            user_id=user_id,
            folder_id=folder.id if folder else None,
            type=infer_type_from_url(url).value,
            title=title or url,
            url=url,
            source_type=SourceType.URL.value,
            client_source=ClientSource(client_source).value,
            platform=classify(url),
        )
        self.session.add(bookmark)
        self.session.flush()
        job = self._job(bookmark, folder_id, url=url, title=title)
        return self._admit(bookmark, job)

    def ingest_from_file(
        self,
        user_id: uuid.UUID,
        *,
        file_name: str | None,
        data: bytes | None,
        client_source: ClientSource | str,
        folder_id: str | None = None,
        title: str | None = None,
        content_type: str | None = None,
    ) -> IngestAcknowledgement:
        extension = validate_upload(file_name, data)
        folder = self._check_folder(user_id, folder_id)
        bookmark = Bookmark(
            user_id=user_id,
            folder_id=folder.id if folder else None,
            type=infer_type_from_extension(extension).value,
            title=title or file_name,
            source_type=SourceType.FILE.value,
            client_source=ClientSource(client_source).value,
            file_extension=extension,
            file_size=len(data),
        )
        self.session.add(bookmark)
        self.session.flush()

        key = build_ingest_key(bookmark.id, file_name)
        bookmark.file_url = self.blob_store.put(
            key, data, content_type=content_type or "application/octet-stream"
        )
        bookmark.blob_key = key
        job = self._job(bookmark, folder_id, file_name=file_name, title=title)
        return self._admit(bookmark, job)

    def ingest_from_extension(
        self,
        user_id: uuid.UUID,
        *,
        url: str,
        html: str,
        client_source: ClientSource | str,
        folder_id: str | None = None,
        title: str | None = None,
    ) -> IngestAcknowledgement:
        folder = self._check_folder(user_id, folder_id)
        bookmark = Bookmark(
            user_id=user_id,
            folder_id=folder.id if folder else None,
            type=BookmarkType.ARTICLE.value,
            title=title or url,
            url=url,
            source_type=SourceType.EXTENSION.value,
            client_source=ClientSource(client_source).value,
            platform=classify(url),
        )
        self.session.add(bookmark)
        self.session.flush()
        job = self._job(bookmark, folder_id, url=url, html=html, title=title)
        return self._admit(bookmark, job)

    def _check_folder(self, user_id: uuid.UUID, folder_id: str | None):
        if folder_id is None:
            return None
        folder = owned_folder(self.session, user_id, folder_id)
        if folder is None:
            raise IngestValidationError("invalid_request", "Folder not found")
        return folder

    def _job(self, bookmark: Bookmark, folder_id: str | None, **fields: Any) -> IngestJob:
        return IngestJob(
            bookmark_id=str(bookmark.id),
            user_id=str(bookmark.user_id),
            source_type=bookmark.source_type,
            auto_folder=folder_id is None and settings.AUTO_FOLDER_ENABLED,
            **fields,
        )

    def _admit(self, bookmark: Bookmark, job: IngestJob) -> IngestAcknowledgement:
        # The worker must be able to see the row, so commit before dispatch.
        self.session.commit()
        self.dispatcher.enqueue_ingest(job)
        record_submission(bookmark.source_type, bookmark.client_source)
        logger.info(
            "Accepted %s ingest %s for user %s", bookmark.source_type, bookmark.id, bookmark.user_id
        )
        return IngestAcknowledgement(
            bookmark_id=bookmark.id,
            title=bookmark.title,
            type=bookmark.type,
            status=bookmark.ingest_status,
        )


FolderResolver = Callable[..., Awaitable["str | None"]]


class IngestProcessor:
    """Processing phase, run inside a worker for each :class:`IngestJob`."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        engine: ConverterEngine,
        embedder: Embedder,
        blob_store: BlobStore | None = None,
        dispatcher: Dispatcher | None = None,
        folder_resolver: FolderResolver = resolve_folder_for_ingest,
    ) -> None:
        self.session_factory = session_factory
        self.engine = engine
        self.embedder = embedder
        self.blob_store = blob_store
        self.dispatcher = dispatcher
        self.folder_resolver = folder_resolver

    async def process(self, job: IngestJob) -> IngestStatus | None:
        """Convert one bookmark and persist the terminal state.

        Conversion problems never escape: they end up as ``failed`` on the
        record. Returns the final status, or ``None`` if the bookmark is gone.
        """

        with session_scope(self.session_factory) as session:
            bookmark = session.get(Bookmark, uuid.UUID(job.bookmark_id))
            if bookmark is None:
                logger.error("Bookmark %s not found for ingestion", job.bookmark_id)
                record_task_result("process_ingest", "missing")
                return None
            if bookmark.is_terminal:
                logger.info("Skipping bookmark %s already %s", bookmark.id, bookmark.ingest_status)
                return bookmark.status

            transition(bookmark, IngestStatus.PROCESSING)
            session.commit()

            if job.auto_folder:
                try:
                    await self._assign_folder(session, bookmark, job)
                except Exception:
                    logger.exception("Auto-folder assignment failed for bookmark %s", job.bookmark_id)
                    session.rollback()

            try:
                result = await self._convert(bookmark, job)
            except Exception as exc:
                logger.exception("Conversion failed for bookmark %s", bookmark.id)
                transition(bookmark, IngestStatus.FAILED, error=str(exc) or exc.__class__.__name__)
            else:
                self._apply_result(bookmark, job, result)
            session.commit()
            status = bookmark.status

        record_task_result("process_ingest", status.value)
        if status is IngestStatus.COMPLETED and self.dispatcher is not None:
            try:
                self.dispatcher.enqueue_embeddings(job.bookmark_id)
            except Exception:
                logger.exception("Failed to schedule embeddings for bookmark %s", job.bookmark_id)
        return status

    async def _assign_folder(self, session: Session, bookmark: Bookmark, job: IngestJob) -> None:
        folder_id = await self.folder_resolver(
            session,
            bookmark.user_id,
            job.source_type,
            url=job.url,
            title=job.title,
            file_name=job.file_name,
        )
        folder = owned_folder(session, bookmark.user_id, folder_id)
        if folder is None:
            if folder_id:
                logger.warning("Ignoring auto-folder %s not owned by user %s", folder_id, bookmark.user_id)
            session.commit()
            return
        bookmark.folder_id = folder.id
        session.commit()

    async def _convert(self, bookmark: Bookmark, job: IngestJob) -> ConversionResult | None:
        if job.source_type == SourceType.EXTENSION.value:
            return await self.engine.convert_from_html(job.html or "", job.url or "")
        if job.source_type == SourceType.FILE.value:
            if self.blob_store is None:
                raise RuntimeError("No blob store configured for file ingestion")
            data = await asyncio.to_thread(self.blob_store.get, bookmark.blob_key)
            return await self.engine.convert_from_buffer(data, bookmark.file_extension or "")
        return await self.engine.convert_from_url(job.url or bookmark.url)

    def _apply_result(self, bookmark: Bookmark, job: IngestJob, result: ConversionResult | None) -> None:
        if result is None or result.is_empty:
            message = (
                EMPTY_HTML_RESULT_ERROR if job.source_type == SourceType.EXTENSION.value else EMPTY_RESULT_ERROR
            )
            transition(bookmark, IngestStatus.FAILED, error=message)
            return

        bookmark.title = job.title or result.title or job.url or job.file_name or UNTITLED
        bookmark.description = extract_description(result.markdown) or None
        transition(bookmark, IngestStatus.COMPLETED, content=result.markdown)

    def generate_embeddings(self, bookmark_id: str) -> int:
        """Rebuild the embeddings of a completed bookmark.

        Failures are logged and leave the ingest status untouched.
        """

        with session_scope(self.session_factory) as session:
            bookmark = session.get(Bookmark, uuid.UUID(bookmark_id))
            if bookmark is None or bookmark.status is not IngestStatus.COMPLETED or not bookmark.content:
                logger.info("Skipping embeddings for bookmark %s", bookmark_id)
                return 0
            try:
                count = regenerate_embeddings(
                    session,
                    bookmark_id=bookmark.id,
                    user_id=bookmark.user_id,
                    content=bookmark.content,
                    embedder=self.embedder,
                )
                session.commit()
            except Exception:
                session.rollback()
                logger.exception("Embedding generation failed for bookmark %s", bookmark_id)
                record_task_result("generate_embeddings", "failed")
                return 0
        record_task_result("generate_embeddings", "completed")
        return count


def reconcile_stale(
    session: Session,
    *,
    older_than: timedelta | None = None,
    now: datetime | None = None,
) -> int:
    """Fail bookmarks stuck in ``pending`` or ``processing`` for too long."""

    threshold = older_than or timedelta(minutes=settings.INGEST_STALE_AFTER_MINUTES)
    cutoff = (now or datetime.now(timezone.utc)) - threshold
    last_change = func.coalesce(Bookmark.updated_at, Bookmark.created_at)
    stmt = select(Bookmark).where(
        Bookmark.ingest_status.in_([IngestStatus.PENDING.value, IngestStatus.PROCESSING.value]),
        last_change < cutoff,
    )
    stale = session.execute(stmt).scalars().all()
    for bookmark in stale:
        transition(bookmark, IngestStatus.FAILED, error=TIMED_OUT_ERROR)
    session.commit()
    if stale:
        logger.warning("Marked %s stale bookmarks as failed", len(stale))
    return len(stale)
