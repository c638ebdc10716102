"""Semantic search over a user's embedded bookmarks."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import List, Sequence

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..ingest.embeddings import Embedder
from ..ingest.types import IngestStatus
from ..models import Bookmark, Embedding

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchHit:
    bookmark_id: uuid.UUID
    title: str | None
    url: str | None
    text: str
    ordinal: int
    score: float


def _build_query_statement(vector: Sequence[float], user_id: uuid.UUID, limit: int) -> Select:
    distance = Embedding.vector.cosine_distance(vector)
    return (
        select(
            Embedding.bookmark_id.label("bookmark_id"),
            Embedding.text.label("text"),
            Embedding.ordinal.label("ordinal"),
            Bookmark.title.label("title"),
            Bookmark.url.label("url"),
            distance.label("distance"),
        )
        .join(Bookmark, Bookmark.id == Embedding.bookmark_id)
        .where(
            Embedding.user_id == user_id,
            Embedding.vector.isnot(None),
            Bookmark.ingest_status == IngestStatus.COMPLETED.value,
        )
        .order_by(distance)
        .limit(limit)
    )


def search(
    session: Session,
    user_id: uuid.UUID,
    query: str,
    *,
    embedder: Embedder,
    top_k: int | None = None,
) -> List[SearchHit]:
    """Embed ``query`` and return the closest chunks, nearest first."""

    text = query.strip()
    if not text:
        return []

    vectors = embedder.embed([text])
    if not vectors:
        logger.debug("Embedder returned no vector for query")
        return []

    limit = max(top_k or settings.SEARCH_TOP_K, 1)
    rows = session.execute(_build_query_statement(vectors[0], user_id, limit)).all()
    return [
        SearchHit(
            bookmark_id=row.bookmark_id,
            title=row.title,
            url=row.url,
            text=row.text,
            ordinal=int(row.ordinal or 0),
            score=1.0 - float(row.distance or 0.0),
        )
        for row in rows
    ]
