"""Embedding generation and the replace-not-merge index update."""
from __future__ import annotations

import logging
import threading
import uuid
from typing import List, Protocol, Sequence

from sentence_transformers import SentenceTransformer
from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import Embedding
from .chunking import chunk_markdown

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Return one vector per input text."""


class SentenceTransformerEmbedder:
    """Local sentence-transformers model, loaded on first use."""

    def __init__(self, model_name: str | None = None, *, dimension: int | None = None) -> None:
        self.model_name = model_name or settings.EMBEDDING_MODEL_NAME
        self.dimension = dimension or settings.EMBEDDING_DIM
        self._model: SentenceTransformer | None = None
        self._lock = threading.Lock()

    @property
    def model(self) -> SentenceTransformer:
        with self._lock:
            if self._model is None:
                logger.info("Loading embedding model: %s", self.model_name)
                self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        cleaned = [text.strip() for text in texts if text and text.strip()]
        if not cleaned:
            return []
        rows = self.model.encode(
            cleaned,
            batch_size=32,
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=False,
        )
        return [fit_dimension(row.tolist(), self.dimension) for row in rows]


def fit_dimension(vector: Sequence[float], target_dim: int) -> List[float]:
    """Pad with zeros or truncate so the vector matches the column size."""

    values = list(vector)
    if len(values) > target_dim:
        logger.debug("Truncating embedding vector from %s to %s dimensions", len(values), target_dim)
        return values[:target_dim]
    return values + [0.0] * (target_dim - len(values))


def delete_embeddings(session: Session, bookmark_id: uuid.UUID) -> int:
    result = session.execute(delete(Embedding).where(Embedding.bookmark_id == bookmark_id))
    return result.rowcount or 0


def regenerate_embeddings(
    session: Session,
    *,
    bookmark_id: uuid.UUID,
    user_id: uuid.UUID,
    content: str,
    embedder: Embedder,
) -> int:
    """Replace the bookmark's embeddings with a fresh generation.

    Existing rows are deleted before the new ones are inserted, so the index
    never holds vectors from two generations of the same bookmark. Returns
    the number of rows written.
    """

    chunks = chunk_markdown(content)
    vectors = embedder.embed([chunk.embedding_text for chunk in chunks]) if chunks else []
    if len(vectors) != len(chunks):
        raise ValueError(f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks")

    removed = delete_embeddings(session, bookmark_id)
    for ordinal, (chunk, vector) in enumerate(zip(chunks, vectors)):
        session.add(
            Embedding(
                bookmark_id=bookmark_id,
                user_id=user_id,
                ordinal=ordinal,
                text=chunk.text,
                metadata_={"headings": chunk.headings, "start": chunk.start, "end": chunk.end},
                vector=vector,
            )
        )
    session.flush()
    logger.info(
        "Regenerated embeddings for bookmark %s: removed=%s inserted=%s", bookmark_id, removed, len(chunks)
    )
    return len(chunks)
