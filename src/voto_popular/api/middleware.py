"""HTTP middleware: CORS, security headers and per-IP request limiting.

Mutations (POST operations such as ``votes.cast`` or ``auth.sync``) get
their own, smaller per-minute budget on top of the general request budget.
Identity-level throttling of failed sign-ins lives in the anti-fraud
service; this layer only blunts floods from a single address.
"""

import math
import time
from collections import defaultdict, deque
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from voto_popular.core.config import Settings
from voto_popular.core.errors import ErrorCode
from voto_popular.core.logging import security_logger
from voto_popular.schemas.common import ErrorResponse

DEFAULT_TRUSTED_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP")

_WINDOW_SECONDS = 60.0
_UNLIMITED_PATH_SUFFIXES = ("/health",)


def get_client_ip(request: Request, trusted_headers: list[str] | tuple[str, ...] | None = None) -> str:
    """Return the caller's address for rate limiting and the audit trail.

    Proxy headers are consulted in priority order; for ``X-Forwarded-For``
    the leftmost entry (the original client) wins. Without a usable header
    the socket peer is used.

    Args:
        request: The incoming request.
        trusted_headers: Header names to consult, highest priority first.
            An empty list disables proxy headers entirely.

    Returns:
        The client IP address, or ``"unknown"``.
    """
    for header in DEFAULT_TRUSTED_HEADERS if trusted_headers is None else trusted_headers:
        value = request.headers.get(header, "").strip()
        if value:
            return value.split(",")[0].strip() if header.lower() == "x-forwarded-for" else value
    return request.client.host if request.client else "unknown"


def request_ip(request: Request) -> str:
    """Client IP for audit records, honouring the configured proxy headers."""
    settings: Settings | None = getattr(request.app.state, "settings", None)
    return get_client_ip(request, settings.trusted_proxy_header_list if settings else None)


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the configured municipality front-ends to call the API.

    Only the RPC verbs (GET queries, POST mutations) and the two headers
    the clients send are allowed.
    """
    kwargs: dict[str, Any] = {
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": ["Authorization", "Content-Type"],
    }
    if settings.cors_origin_list:
        kwargs["allow_origins"] = settings.cors_origin_list
    if settings.cors_origin_regex.strip():
        kwargs["allow_origin_regex"] = settings.cors_origin_regex.strip()
    app.add_middleware(CORSMiddleware, **kwargs)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers; responses to authenticated calls are never cached."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        if "authorization" in request.headers:
            response.headers["Cache-Control"] = "no-store"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory per-IP limits over a sliding one-minute window.

    Args:
        app: The wrapped ASGI app.
        requests_per_minute: Budget for all requests from one address.
        mutations_per_minute: Separate budget for POST requests, or None.
        trusted_proxy_headers: Header names used to find the client address.
    """

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 60,
        mutations_per_minute: int | None = None,
        trusted_proxy_headers: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.mutations_per_minute = mutations_per_minute
        self.trusted_proxy_headers = trusted_proxy_headers
        self._requests: dict[str, deque[float]] = defaultdict(deque)
        self._mutations: dict[str, deque[float]] = defaultdict(deque)

    @staticmethod
    def _retry_after(hits: deque[float], limit: int, now: float) -> int | None:
        """Prune expired hits; return seconds to wait when the budget is spent."""
        while hits and hits[0] <= now - _WINDOW_SECONDS:
            hits.popleft()
        if len(hits) < limit:
            return None
        return max(1, math.ceil(hits[0] + _WINDOW_SECONDS - now))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path.endswith(_UNLIMITED_PATH_SUFFIXES):
            return await call_next(request)

        client_ip = get_client_ip(request, self.trusted_proxy_headers)
        now = time.time()
        is_mutation = request.method == "POST" and self.mutations_per_minute is not None

        retry_after = self._retry_after(self._requests[client_ip], self.requests_per_minute, now)
        if retry_after is None and is_mutation:
            assert self.mutations_per_minute is not None
            retry_after = self._retry_after(self._mutations[client_ip], self.mutations_per_minute, now)

        if retry_after is not None:
            security_logger.warning(f"Rate limit exceeded for {client_ip} on {request.method} {request.url.path}")
            body = ErrorResponse(detail="Rate limit exceeded", code=ErrorCode.RATE_LIMITED)
            return JSONResponse(
                status_code=429,
                content=body.model_dump(exclude_none=True),
                headers={"Retry-After": str(retry_after)},
            )

        self._requests[client_ip].append(now)
        if is_mutation:
            self._mutations[client_ip].append(now)
        return await call_next(request)
