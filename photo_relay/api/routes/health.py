"""
Liveness endpoint.

GET / answers as long as the process is up. It deliberately doesn't touch
the storage backend: a Drive outage should make uploads fail, not make the
load balancer restart a healthy process.
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.relay import iso_timestamp, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


class LivenessResponse(BaseModel):
    """Liveness check response."""
    ok: bool = Field(description="Always true while the process is serving")
    now: str = Field(description="Current server time, ISO-8601 UTC")


@router.get(
    "/",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
    description="Returns 200 if the service is running. Does not check the storage backend.",
)
async def liveness() -> LivenessResponse:
    return LivenessResponse(ok=True, now=iso_timestamp(utc_now()))
