"""Semantic search over saved bookmarks."""
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..ai.retrieval import search
from ..core.db import get_session
from ..ingest.embeddings import Embedder
from .dependencies import get_embedder, require_user_id

router = APIRouter()


class SearchResult(BaseModel):
    bookmark_id: uuid.UUID = Field(serialization_alias="bookmarkId")
    title: Optional[str] = None
    url: Optional[str] = None
    text: str
    score: float


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult]


@router.get("", response_model=SearchResponse, summary="Search bookmark content")
async def search_bookmarks(
    request: Request,
    q: str = Query(..., min_length=1, max_length=512),
    limit: Optional[int] = Query(None, ge=1, le=50),
    session: Session = Depends(get_session),
    embedder: Embedder = Depends(get_embedder),
) -> SearchResponse:
    user_id = require_user_id(request)
    hits = search(session, user_id, q, embedder=embedder, top_k=limit)
    return SearchResponse(
        query=q,
        results=[
            SearchResult(bookmark_id=hit.bookmark_id, title=hit.title, url=hit.url, text=hit.text, score=hit.score)
            for hit in hits
        ],
    )
