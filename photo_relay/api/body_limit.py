"""
Request body size limit.

The multipart parser spools the whole body before the upload route runs,
so a limit checked in the route alone would let a client push an
arbitrarily large body onto the server first. This middleware bounds the
body while it is being received:

- A declared Content-Length over the limit is refused before any of the
  body is read.
- Otherwise the bytes pulled from the ASGI receive channel are counted,
  and reading stops with BodyTooLarge as soon as the count passes the
  limit.

The limit is the photo limit plus room for multipart framing and the
other form fields. The exact per-file check still happens in the route.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.relay import too_large_message

logger = logging.getLogger(__name__)


# Boundaries, part headers and the phoneId field fit comfortably in this
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class BodyTooLarge(HTTPException):
    """Raised from the receive channel once a body passes the limit."""

    def __init__(self, max_upload_bytes: int) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=too_large_message(max_upload_bytes),
        )


def declared_length(scope: Scope) -> Optional[int]:
    """Content-Length from the request headers, or None if absent or unusable."""
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class BodySizeLimitMiddleware:
    """Pure ASGI middleware that caps how much request body is read."""

    def __init__(
        self,
        app: ASGIApp,
        max_upload_bytes: int,
        overhead_bytes: int = MULTIPART_OVERHEAD_BYTES,
    ) -> None:
        self.app = app
        self.max_upload_bytes = max_upload_bytes
        self.max_body_bytes = max_upload_bytes + overhead_bytes

    def receive_wrapper(self, receive: Receive) -> Receive:
        received = 0

        async def inner() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] != "http.request":
                return message

            received += len(message.get("body", b""))
            if received > self.max_body_bytes:
                logger.warning(
                    "Request body exceeded limit while streaming",
                    extra={"received_bytes": received, "max_body_bytes": self.max_body_bytes}
                )
                raise BodyTooLarge(self.max_upload_bytes)
            return message

        return inner

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = declared_length(scope)
        if length is not None and length > self.max_body_bytes:
            logger.warning(
                "Rejected request with oversized Content-Length",
                extra={
                    "content_length": length,
                    "max_body_bytes": self.max_body_bytes,
                    "path": scope.get("path"),
                }
            )
            response = JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": too_large_message(self.max_upload_bytes)},
            )
            await response(scope, receive, send)
            return

        await self.app(scope, self.receive_wrapper(receive), send)
