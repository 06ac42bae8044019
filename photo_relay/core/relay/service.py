"""
Upload relay logic.

This module is the relay's request path without the HTTP framing:
validate what arrived, name it, hand it to storage, and report what
happened. It doesn't know about FastAPI, Google Drive or S3.

Two behaviours are deliberate limitations, not bugs:
- Every upload is labelled image/jpeg. The bytes are never sniffed.
- The correlation token (phoneId) is logged but never deduplicated.
  Stopping repeat uploads would need persistent state, which the relay
  does not keep.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Sequence

from .models import (
    StorageFailure,
    StorageTarget,
    StoredObject,
    StoreResult,
    UploadRejected,
    UploadRequest,
)

logger = logging.getLogger(__name__)


DEFAULT_FILENAME_PREFIX = "photo_bal_"
DEFAULT_MIME_TYPE = "image/jpeg"
FILENAME_EXTENSION = ".jpg"


def too_large_message(max_upload_bytes: int) -> str:
    return f"File too large. Maximum size is {max_upload_bytes} bytes"


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStore(Protocol):
    """
    Interface for the storage backend capability.

    Built once at startup and shared by every request. Implementations
    must be safe to call concurrently and must report backend failures
    as a StorageFailure value instead of raising.
    """

    async def store(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        container_id: Optional[str] = None,
    ) -> StoreResult:
        """Write one object and return its id and stored name."""
        ...


# ---------------------------------------------------------------------------
# Timestamps and naming
# ---------------------------------------------------------------------------

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """
    Render a moment as ISO-8601 UTC with millisecond precision.

    Example: 2024-05-01T12:30:45.123Z. Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_filename(
    moment: datetime,
    prefix: str = DEFAULT_FILENAME_PREFIX,
) -> str:
    """
    Build the stored filename for an upload received at `moment`.

    The timestamp keeps names sortable; ':' and '.' become '-' so the
    name is safe on every filesystem.
    """
    stamp = iso_timestamp(moment).replace(":", "-").replace(".", "-")
    return f"{prefix}{stamp}{FILENAME_EXTENSION}"


# ---------------------------------------------------------------------------
# Relay
# ---------------------------------------------------------------------------

class UploadRelay:
    """
    Turns one inbound upload into at most one backend write.

    The relay itself holds nothing mutable: the store is a shared
    capability and everything else is configuration. Creating one per
    request is cheap.
    """

    def __init__(
        self,
        store: ObjectStore,
        target: StorageTarget,
        max_upload_bytes: int,
        filename_prefix: str = DEFAULT_FILENAME_PREFIX,
        mime_type: str = DEFAULT_MIME_TYPE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_upload_bytes < 1:
            raise ValueError("max_upload_bytes must be positive")

        self._store = store
        self._target = target
        self._max_upload_bytes = max_upload_bytes
        self._filename_prefix = filename_prefix
        self._mime_type = mime_type
        self._clock = clock

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    def validate(
        self,
        payloads: Sequence[bytes],
        phone_id: Optional[str] = None,
        remote_addr: Optional[str] = None,
    ) -> UploadRequest:
        """
        Check what arrived in the photo field.

        Exactly one file is required, no larger than the configured limit.
        Raises UploadRejected with a message suitable for the client.
        """
        if not payloads:
            raise UploadRejected("No file provided")

        if len(payloads) > 1:
            raise UploadRejected("Only one file may be uploaded per request")

        payload = payloads[0]
        if len(payload) > self._max_upload_bytes:
            raise UploadRejected(too_large_message(self._max_upload_bytes))

        return UploadRequest(
            payload=payload,
            phone_id=phone_id or None,
            remote_addr=remote_addr,
        )

    async def relay(self, upload: UploadRequest) -> StoreResult:
        """
        Store a validated upload.

        Never raises for backend problems. A store implementation that
        raises anyway is caught here so one bad request can't take down
        the worker.
        """
        filename = build_filename(self._clock(), self._filename_prefix)

        logger.info(
            "Relaying upload",
            extra={
                "upload_name": filename,
                "size_bytes": upload.size_bytes,
                "phone_id": upload.phone_id,
                "remote_addr": upload.remote_addr,
                "container_id": self._target.container_id,
            }
        )

        try:
            result = await self._store.store(
                data=upload.payload,
                filename=filename,
                mime_type=self._mime_type,
                container_id=self._target.container_id,
            )
        except Exception as e:
            logger.error(
                "Storage backend raised instead of returning a failure",
                extra={"upload_name": filename, "error": str(e)},
                exc_info=e,
            )
            result = StorageFailure(message=str(e) or e.__class__.__name__)

        if isinstance(result, StoredObject):
            logger.info(
                "Upload stored",
                extra={"file_id": result.file_id, "upload_name": result.name}
            )
        else:
            logger.error(
                "Upload failed",
                extra={"upload_name": filename, "error": result.message}
            )

        return result
