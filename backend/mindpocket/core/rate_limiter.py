"""Shared SlowAPI rate limiter configuration."""
from __future__ import annotations

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


def _user_or_ip_key(request: Request) -> str:
    """Bucket by logged-in user, falling back to the client address."""

    user_id = getattr(request.state, "user_id", None)
    if not user_id and "session" in request.scope:
        user_id = request.session.get("user_id")
    if user_id:
        return str(user_id)
    return get_remote_address(request)


limiter = Limiter(key_func=_user_or_ip_key)


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return a JSON response when a rate limit is exceeded."""

    logger.warning("Rate limit exceeded for path=%s limit=%s", request.url.path, exc.detail)
    return JSONResponse({"detail": "Rate limit exceeded"}, status_code=exc.status_code)
