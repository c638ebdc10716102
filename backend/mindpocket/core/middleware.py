"""ASGI middleware enforcing sessions on API routes and logging requests."""
from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from fastapi import status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .metrics import record_request

SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}


class AuthenticatedSessionMiddleware(BaseHTTPMiddleware):
    """Reject API calls without a logged-in session.

    JSON writes additionally need an ``X-CSRF-Token`` header matching the
    token stored in the session. Multipart uploads are exempt because browsers
    cannot forge them cross-origin with a JSON content type.
    """

    def __init__(self, app: Callable, api_prefix: str = "/api") -> None:
        super().__init__(app)
        self.api_prefix = api_prefix

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith(self.api_prefix):
            session = request.session
            user_id = session.get("user_id")
            if not user_id:
                return JSONResponse({"detail": "Not authenticated"}, status_code=status.HTTP_401_UNAUTHORIZED)

            request.state.user_id = user_id

            if request.method not in SAFE_METHODS and _is_json_request(request):
                expected = session.get("csrf_token")
                provided = request.headers.get("X-CSRF-Token")
                if not expected or not provided or provided != expected:
                    return JSONResponse(
                        {"detail": "Invalid CSRF token"},
                        status_code=status.HTTP_403_FORBIDDEN,
                    )

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one summary line per request and feed the request metrics."""

    def __init__(self, app: Callable) -> None:
        super().__init__(app)
        self.logger = logging.getLogger("mindpocket.request")

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        method = request.method
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            record_request(method, route_path, 500, time.perf_counter() - start)
            self.logger.exception("HTTP %s %s raised an unhandled exception", method, route_path)
            raise
        duration = time.perf_counter() - start

        self.logger.info(
            "HTTP %s %s status=%s user=%s duration=%.3f",
            method,
            route_path,
            response.status_code,
            getattr(request.state, "user_id", None) or "anonymous",
            duration,
        )
        record_request(method, route_path, response.status_code, duration)
        response.headers.setdefault("X-Process-Time", f"{duration:.6f}")
        return response


def _is_json_request(request: Request) -> bool:
    content_type = request.headers.get("content-type")
    if not content_type:
        return False
    return "application/json" in content_type.lower()
