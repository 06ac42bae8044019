"""
Photo upload endpoint.

POST /upload takes multipart/form-data with one file field `photo` and an
optional text field `phoneId`, and forwards the photo to storage.

Response mapping:
- 200 {"ok": true, "fileId": ..., "name": ...} when storage accepted it
- 400 {"error": ...} when the request itself is bad (no file, too big)
- 500 {"error": "Upload failed", "details": ...} when storage refused it

Errors use {"error": ...} rather than FastAPI's {"detail": ...} because
existing clients already parse that shape.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ...core.relay import StorageFailure, UploadRejected
from ..dependencies import UploadRelayDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after a photo was stored."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = Field(default=True, description="Always true on success")
    file_id: str = Field(alias="fileId", description="Identifier assigned by the storage backend")
    name: str = Field(description="Name the file was stored under")


class ErrorResponse(BaseModel):
    """Error acknowledgement."""
    error: str = Field(description="What went wrong")
    details: Optional[str] = Field(default=None, description="Message from the storage backend")


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


def client_address(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a photo",
    description="Relay one photo (at most 8 MB) to cloud storage under a generated name",
    responses={
        400: {"model": ErrorResponse, "description": "Missing, duplicate or oversized file"},
        403: {"model": ErrorResponse, "description": "Origin not allowed"},
        500: {"model": ErrorResponse, "description": "Storage backend rejected the upload"},
    },
)
async def upload_photo(
    request: Request,
    relay: UploadRelayDep,
    photo: Annotated[Optional[list[UploadFile]], File(description="The photo to relay")] = None,
    phone_id: Annotated[Optional[str], Form(alias="phoneId")] = None,
):
    """
    Validate, rename and store one photo.

    The body as a whole is already capped by BodySizeLimitMiddleware;
    here each file is read at most one byte past the exact limit. Storage
    is only called once the whole payload is in hand and valid.
    """
    limit = relay.max_upload_bytes
    payloads = [await part.read(limit + 1) for part in photo or []]

    try:
        upload = relay.validate(
            payloads,
            phone_id=phone_id,
            remote_addr=client_address(request),
        )
    except UploadRejected as e:
        logger.warning(
            "Rejected upload",
            extra={
                "reason": e.reason,
                "file_count": len(payloads),
                "phone_id": phone_id,
            }
        )
        return error_response(status.HTTP_400_BAD_REQUEST, e.reason)

    result = await relay.relay(upload)

    if isinstance(result, StorageFailure):
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Upload failed",
            details=result.message,
        )

    return UploadResponse(file_id=result.file_id, name=result.name)
