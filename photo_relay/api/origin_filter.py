"""
Origin allow-list enforcement.

Starlette's CORSMiddleware only decides which CORS headers to send back;
a simple POST from a disallowed origin still reaches the route and
still triggers an upload. This middleware runs first and turns such
requests away before any route code runs.

Requests without an Origin header (curl, mobile apps, server-to-server)
always pass.
"""

import logging
from typing import Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


WILDCARD = "*"
REJECTION_MESSAGE = "Origin not allowed by CORS"


def is_origin_allowed(origin: Optional[str], allowed_origins: Sequence[str]) -> bool:
    """Decide whether a request carrying `origin` may proceed."""
    if not origin:
        return True
    if WILDCARD in allowed_origins:
        return True
    return origin in allowed_origins


class OriginFilterMiddleware(BaseHTTPMiddleware):
    """Reject browser requests from origins outside the allow-list."""

    def __init__(self, app, allowed_origins: Sequence[str]) -> None:
        super().__init__(app)
        self._allowed_origins = tuple(allowed_origins)

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")

        if not is_origin_allowed(origin, self._allowed_origins):
            logger.warning(
                "Rejected request from disallowed origin",
                extra={
                    "origin": origin,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=403,
                content={"error": REJECTION_MESSAGE},
            )

        return await call_next(request)
