"""Celery tasks for asynchronous ingestion."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..core.db import SessionLocal, session_scope
from ..core.metrics import record_task_result
from ..core.s3 import BlobStore
from ..ingest.converters.engine import ConverterEngine
from ..ingest.embeddings import SentenceTransformerEmbedder
from ..ingest.pipeline import CeleryDispatcher, IngestJob, IngestProcessor, reconcile_stale
from .celery_app import celery_app

logger = logging.getLogger(__name__)

# One engine and embedder per worker process.
engine = ConverterEngine.from_settings()
embedder = SentenceTransformerEmbedder()


def build_processor() -> IngestProcessor:
    return IngestProcessor(
        SessionLocal,
        engine=engine,
        embedder=embedder,
        blob_store=BlobStore(),
        dispatcher=CeleryDispatcher(celery_app),
    )


@celery_app.task(name="workers.process_ingest")
def process_ingest(payload: dict[str, Any]) -> str:
    """Convert one submitted bookmark."""

    job = IngestJob.from_payload(payload)
    try:
        status = asyncio.run(build_processor().process(job))
    except Exception:
        logger.exception("Ingest task crashed for bookmark %s", job.bookmark_id)
        record_task_result("process_ingest", "crashed")
        return "crashed"
    return status.value if status else "missing"


@celery_app.task(name="workers.generate_embeddings")
def generate_embeddings(bookmark_id: str) -> int:
    return build_processor().generate_embeddings(bookmark_id)


@celery_app.task(name="workers.reconcile_stale_ingests")
def reconcile_stale_ingests() -> int:
    """Fail bookmarks abandoned by a crashed or restarted worker."""

    with session_scope(SessionLocal) as session:
        count = reconcile_stale(session)
    record_task_result("reconcile_stale_ingests", "completed")
    return count
