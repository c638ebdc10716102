"""Read, update and delete individual bookmarks."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..core.db import get_session
from ..ingest.auto_folder import owned_folder
from ..ingest.embeddings import delete_embeddings
from ..models import Bookmark
from .dependencies import require_user_id

router = APIRouter()

logger = logging.getLogger(__name__)


class BookmarkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    folder_id: Optional[uuid.UUID] = Field(default=None, serialization_alias="folderId")
    type: str
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    content: Optional[str] = None
    source_type: str = Field(serialization_alias="sourceType")
    client_source: str = Field(serialization_alias="clientSource")
    platform: Optional[str] = None
    file_extension: Optional[str] = Field(default=None, serialization_alias="fileExtension")
    file_size: Optional[int] = Field(default=None, serialization_alias="fileSize")
    file_url: Optional[str] = Field(default=None, serialization_alias="fileUrl")
    ingest_status: str = Field(serialization_alias="ingestStatus")
    ingest_error: Optional[str] = Field(default=None, serialization_alias="ingestError")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, serialization_alias="updatedAt")


class BookmarkUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=512)
    description: Optional[str] = None
    folder_id: Optional[str] = Field(default=None, alias="folderId")


def _get_owned_bookmark(session: Session, bookmark_id: uuid.UUID, user_id: uuid.UUID) -> Bookmark:
    bookmark = session.get(Bookmark, bookmark_id)
    if bookmark is None or bookmark.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bookmark not found")
    return bookmark


@router.get("/{bookmark_id}", response_model=BookmarkResponse, summary="Fetch a bookmark")
async def get_bookmark(
    bookmark_id: uuid.UUID,
    request: Request,
    session: Session = Depends(get_session),
) -> BookmarkResponse:
    user_id = require_user_id(request)
    bookmark = _get_owned_bookmark(session, bookmark_id, user_id)
    return BookmarkResponse.model_validate(bookmark)


@router.patch("/{bookmark_id}", summary="Update bookmark metadata")
async def update_bookmark(
    bookmark_id: uuid.UUID,
    payload: BookmarkUpdateRequest,
    request: Request,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Change the title, description or folder; ``folderId: null`` unfiles it."""

    user_id = require_user_id(request)
    bookmark = _get_owned_bookmark(session, bookmark_id, user_id)

    fields = payload.model_fields_set
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    if "folder_id" in fields:
        if payload.folder_id is None:
            bookmark.folder_id = None
        else:
            folder = owned_folder(session, user_id, payload.folder_id.strip())
            if folder is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid folder")
            bookmark.folder_id = folder.id
    if "title" in fields and payload.title is not None:
        bookmark.title = payload.title
    if "description" in fields:
        bookmark.description = payload.description

    return {"success": True}


@router.delete("/{bookmark_id}", summary="Delete a bookmark and its embeddings")
async def delete_bookmark(
    bookmark_id: uuid.UUID,
    request: Request,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    user_id = require_user_id(request)
    bookmark = _get_owned_bookmark(session, bookmark_id, user_id)

    removed = delete_embeddings(session, bookmark.id)
    session.delete(bookmark)
    logger.info("Deleted bookmark %s and %s embeddings", bookmark_id, removed)
    return {"success": True}
