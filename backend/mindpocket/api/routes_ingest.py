"""Submission and history endpoints for the ingestion pipeline."""
import logging
import uuid
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from ..core.config import settings
from ..core.db import get_session
from ..core.rate_limiter import limiter
from ..core.s3 import BlobStore
from ..ingest.errors import IngestValidationError
from ..ingest.pipeline import Dispatcher, IngestAcknowledgement, IngestionService, file_too_large
from ..ingest.types import ClientSource, IngestExtensionRequest, IngestStatus, IngestUrlRequest
from ..models import Bookmark
from .dependencies import get_blob_store, get_dispatcher, require_user_id

router = APIRouter()

logger = logging.getLogger(__name__)


class IngestResponse(BaseModel):
    bookmark_id: uuid.UUID = Field(serialization_alias="bookmarkId")
    title: str
    type: str
    status: str

    @classmethod
    def from_acknowledgement(cls, ack: IngestAcknowledgement) -> "IngestResponse":
        return cls(bookmark_id=ack.bookmark_id, title=ack.title, type=ack.type, status=ack.status)


class HistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    type: str
    source_type: str = Field(serialization_alias="sourceType")
    ingest_status: str = Field(serialization_alias="ingestStatus")
    ingest_error: Optional[str] = Field(default=None, serialization_alias="ingestError")
    url: Optional[str] = None
    created_at: datetime = Field(serialization_alias="createdAt")


class HistoryResponse(BaseModel):
    items: List[HistoryItem]


def _bad_request(reason: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": message, "reason": reason},
    )


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


def _form_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


async def read_upload(upload: UploadFile, limit: int) -> bytes:
    """Read at most one byte past ``limit`` so oversized bodies never load whole."""

    if upload.size is not None and upload.size > limit:
        raise file_too_large()
    return await upload.read(limit + 1)


async def _ingest_file(request: Request, service: IngestionService, user_id: uuid.UUID) -> IngestAcknowledgement:
    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise IngestValidationError("no_file", "No file provided")

    raw_source = _form_text(form.get("clientSource")) or ClientSource.WEB.value
    try:
        client_source = ClientSource(raw_source)
    except ValueError:
        raise IngestValidationError("invalid_request", f"Unknown clientSource: {raw_source}") from None

    data = await read_upload(upload, settings.UPLOAD_MAX_BYTES)
    return service.ingest_from_file(
        user_id,
        file_name=upload.filename,
        data=data,
        client_source=client_source,
        folder_id=_form_text(form.get("folderId")),
        title=_form_text(form.get("title")),
        content_type=upload.content_type,
    )


async def _ingest_json(request: Request, service: IngestionService, user_id: uuid.UUID) -> IngestAcknowledgement:
    try:
        body = await request.json()
    except ValueError:
        raise IngestValidationError("invalid_request", "Request body must be JSON") from None
    if not isinstance(body, dict):
        raise IngestValidationError("invalid_request", "Request body must be a JSON object")

    try:
        if "html" in body:
            payload = IngestExtensionRequest.model_validate(body)
        else:
            payload = IngestUrlRequest.model_validate(body)
    except ValidationError as exc:
        raise IngestValidationError("invalid_request", _first_error(exc)) from None

    if isinstance(payload, IngestExtensionRequest):
        return service.ingest_from_extension(
            user_id,
            url=payload.url,
            html=payload.html,
            client_source=payload.client_source,
            folder_id=payload.folder_id,
            title=payload.title,
        )
    return service.ingest_from_url(
        user_id,
        url=payload.url,
        client_source=payload.client_source,
        folder_id=payload.folder_id,
        title=payload.title,
    )


@router.post(
    "",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a URL, file or page snapshot",
)
@limiter.limit(settings.RATE_LIMIT_INGESTION)
async def submit_ingest(
    request: Request,
    session: Session = Depends(get_session),
    blob_store: BlobStore = Depends(get_blob_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> IngestResponse:
    """Record the submission as ``pending`` and queue it for conversion.

    Multipart bodies are treated as file uploads, JSON bodies with an
    ``html`` field as browser-extension snapshots and any other JSON as a
    plain URL.
    """

    user_id = require_user_id(request)
    service = IngestionService(session, blob_store=blob_store, dispatcher=dispatcher)
    content_type = request.headers.get("content-type", "").lower()

    try:
        if content_type.startswith("multipart/form-data"):
            ack = await _ingest_file(request, service, user_id)
        else:
            ack = await _ingest_json(request, service, user_id)
    except IngestValidationError as exc:
        logger.info("Rejected ingest for user %s: %s (%s)", user_id, exc.reason, exc.message)
        raise _bad_request(exc.reason, exc.message) from None

    return IngestResponse.from_acknowledgement(ack)


@router.get("/history", response_model=HistoryResponse, summary="Recent ingests")
async def ingest_history(
    request: Request,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    session: Session = Depends(get_session),
) -> HistoryResponse:
    """List the user's bookmarks newest first; unknown statuses are ignored."""

    user_id = require_user_id(request)
    page_size = min(limit or settings.HISTORY_DEFAULT_LIMIT, settings.HISTORY_MAX_LIMIT)
    if page_size < 1:
        page_size = settings.HISTORY_DEFAULT_LIMIT

    stmt = select(Bookmark).where(Bookmark.user_id == user_id)
    if status_filter in {item.value for item in IngestStatus}:
        stmt = stmt.where(Bookmark.ingest_status == status_filter)
    stmt = stmt.order_by(Bookmark.created_at.desc()).limit(page_size).offset(max(offset or 0, 0))

    bookmarks = session.execute(stmt).scalars().all()
    return HistoryResponse(items=[HistoryItem.model_validate(bookmark) for bookmark in bookmarks])
