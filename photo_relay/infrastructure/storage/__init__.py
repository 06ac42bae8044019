"""
Object storage integration for relayed uploads.

Supports Google Drive (service account) and S3-compatible stores.
Includes mock mode for local development without credentials.
"""

from .client import (
    DriveStorageClient,
    MockStorageClient,
    S3StorageClient,
    create_drive_client,
    create_s3_client,
    create_storage_client,
)
from .credentials import CredentialError, S3Credentials

__all__ = [
    "DriveStorageClient",
    "MockStorageClient",
    "S3StorageClient",
    "create_drive_client",
    "create_s3_client",
    "create_storage_client",
    "CredentialError",
    "S3Credentials",
]
