"""
Domain models for the upload relay.

These models describe one upload as it moves through the relay. They have
no dependencies on FastAPI or any storage SDK, so the relay logic can be
tested without a web server or network access.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class StorageTarget:
    """
    Where uploads are placed on the backend.

    Derived from configuration once at startup. A Drive folder id for the
    Drive backend, a bucket name for S3. None means the backend default
    (the service account's own Drive root).
    """
    container_id: Optional[str] = None


@dataclass(frozen=True)
class UploadRequest:
    """
    A validated inbound upload.

    Only exists for the duration of one HTTP request. The correlation
    token and client address are carried for logging; nothing checks
    them against earlier uploads.
    """
    payload: bytes
    phone_id: Optional[str] = None
    remote_addr: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class StoredObject:
    """What the backend reports after a successful write."""
    file_id: str
    name: str


@dataclass(frozen=True)
class StorageFailure:
    """A failed backend write, carrying the backend's own message."""
    message: str


# A store call returns exactly one of these, never raises for backend errors
StoreResult = Union[StoredObject, StorageFailure]


class UploadRejected(Exception):
    """Raised when an inbound upload fails validation."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
