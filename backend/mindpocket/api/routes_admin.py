"""Health and metrics endpoints for operators."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.db import get_session

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/health", summary="Readiness probe")
async def admin_health(session: Session = Depends(get_session)) -> JSONResponse:
    """Report readiness; 503 when the database cannot be reached."""

    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check failed to reach the database")
        return JSONResponse({"status": "unavailable", "database": "error"}, status_code=503)
    return JSONResponse({"status": "ok", "database": "ok", "version": settings.VERSION})


@router.get("/metrics", summary="Prometheus metrics feed")
async def admin_metrics() -> Response:
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
