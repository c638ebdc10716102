"""Request-scoped helpers shared by the API routers."""
from __future__ import annotations

import uuid
from functools import lru_cache

from fastapi import HTTPException, Request, status

from ..core.s3 import BlobStore
from ..ingest.embeddings import SentenceTransformerEmbedder
from ..ingest.pipeline import CeleryDispatcher, Dispatcher


def require_user_id(request: Request) -> uuid.UUID:
    raw_user_id = getattr(request.state, "user_id", None)
    if not raw_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return uuid.UUID(str(raw_user_id))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session") from None


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    return BlobStore()


@lru_cache(maxsize=1)
def get_dispatcher() -> Dispatcher:
    return CeleryDispatcher()


@lru_cache(maxsize=1)
def get_embedder() -> SentenceTransformerEmbedder:
    return SentenceTransformerEmbedder()
