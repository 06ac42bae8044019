"""
Upload relay logic.

Contains the domain models, the ObjectStore protocol and the relay service.
"""

from .models import (
    StorageFailure,
    StorageTarget,
    StoredObject,
    StoreResult,
    UploadRejected,
    UploadRequest,
)
from .service import (
    ObjectStore,
    UploadRelay,
    build_filename,
    iso_timestamp,
    too_large_message,
    utc_now,
)

__all__ = [
    "StorageFailure",
    "StorageTarget",
    "StoredObject",
    "StoreResult",
    "UploadRejected",
    "UploadRequest",
    "ObjectStore",
    "UploadRelay",
    "build_filename",
    "iso_timestamp",
    "too_large_message",
    "utc_now",
]
