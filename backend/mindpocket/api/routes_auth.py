"""Session endpoints for the development login flow."""
from __future__ import annotations

import logging
import secrets
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.db import get_session
from ..models import User

router = APIRouter()

logger = logging.getLogger(__name__)


class LocalLoginRequest(BaseModel):
    """Request payload for the development local login flow."""

    email: str
    password: str


@router.get("/me", summary="Current user profile")
async def read_current_user(
    request: Request, session: Session = Depends(get_session)
) -> dict[str, Any]:
    """Return the authenticated user and the CSRF token for JSON writes."""

    raw_user_id = request.session.get("user_id")
    if not raw_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        user_uuid = uuid.UUID(str(raw_user_id))
    except (TypeError, ValueError):
        request.session.clear()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")

    user = session.get(User, user_uuid)
    if user is None:
        request.session.clear()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    csrf_token = request.session.get("csrf_token")
    if not csrf_token:
        csrf_token = secrets.token_urlsafe(32)
        request.session["csrf_token"] = csrf_token

    return {
        "user": {
            "id": str(user.id),
            "email": user.email,
            "display_name": user.display_name,
        },
        "csrf_token": csrf_token,
    }


@router.post("/logout", summary="Terminate the current session")
async def logout(request: Request) -> JSONResponse:
    """Clear the session cookie for the authenticated user."""

    request.session.clear()
    response = JSONResponse({"detail": "Logged out"})
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        path="/",
        secure=settings.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post("/local-login", summary="Authenticate with a development account")
async def local_login(
    payload: LocalLoginRequest,
    request: Request,
    session: Session = Depends(get_session),
) -> JSONResponse:
    if not settings.LOCAL_LOGIN_ENABLED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    expected_email = settings.LOCAL_LOGIN_EMAIL.strip().lower()
    provided_email = payload.email.strip().lower()
    if provided_email != expected_email or payload.password.strip() != settings.LOCAL_LOGIN_PASSWORD.strip():
        logger.info("Rejected local login for %s", provided_email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    user = _get_or_create_user(session, email=expected_email, display_name=payload.email.strip())

    request.session.clear()
    request.session["user_id"] = str(user.id)
    request.session["csrf_token"] = secrets.token_urlsafe(32)

    return JSONResponse({"detail": "Logged in"})


def _get_or_create_user(session: Session, *, email: str, display_name: str | None) -> User:
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(email=email, display_name=display_name)
        session.add(user)
        session.flush()
        logger.info("Created local user %s", user.id)
    return user
