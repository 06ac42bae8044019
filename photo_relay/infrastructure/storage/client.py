"""
Object storage clients for relayed uploads.

Three implementations of the core ObjectStore protocol:
- DriveStorageClient: Google Drive v3 through a service account (default)
- S3StorageClient: any S3-compatible store (AWS S3, Cloudflare R2, MinIO)
- MockStorageClient: in-memory, for local development and tests

Each client is built once at startup and shared by every request. The SDKs
underneath are synchronous, so writes run in a worker thread to keep the
event loop free while a large photo is in flight.

Backend failures never escape as exceptions: store() returns a
StorageFailure carrying the backend's message and the caller decides what
to tell the client. Nothing here retries; one store() call is at most one
remote write.
"""

import asyncio
import io
import logging
from typing import Any, Callable, Optional
from uuid import uuid4

import google_auth_httplib2
import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from ...core.relay import ObjectStore, StorageFailure, StoredObject, StoreResult
from .credentials import (
    S3Credentials,
    build_drive_credentials,
    parse_s3_credentials,
    parse_service_account_info,
)

logger = logging.getLogger(__name__)


DRIVE_RESPONSE_FIELDS = "id, name"


# ---------------------------------------------------------------------------
# Google Drive
# ---------------------------------------------------------------------------

class DriveStorageClient:
    """
    Google Drive storage through the v3 files API.

    The service object is immutable and shared. httplib2 connections are
    not thread-safe, so every write gets a fresh HTTP transport from
    `http_factory` (an AuthorizedHttp wrapping the shared credentials in
    production, a canned-response mock in tests).
    """

    def __init__(
        self,
        service: Any,
        http_factory: Callable[[], Any],
        principal: Optional[str] = None,
    ) -> None:
        self._service = service
        self._http_factory = http_factory
        self._principal = principal

    @property
    def principal(self) -> Optional[str]:
        """Service account email the uploads are made as."""
        return self._principal

    async def store(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        container_id: Optional[str] = None,
    ) -> StoreResult:
        """
        Upload a file to Drive.

        Uses a single multipart request (metadata + bytes) rather than a
        resumable session: payloads are small and bounded, and a resumable
        upload would mean several remote calls per photo.
        """
        return await asyncio.to_thread(
            self._store_blocking, data, filename, mime_type, container_id
        )

    def _store_blocking(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        container_id: Optional[str],
    ) -> StoreResult:
        metadata: dict[str, Any] = {"name": filename, "mimeType": mime_type}
        if container_id:
            metadata["parents"] = [container_id]

        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)

        try:
            request = self._service.files().create(
                body=metadata,
                media_body=media,
                fields=DRIVE_RESPONSE_FIELDS,
                supportsAllDrives=True,
            )
            response = request.execute(http=self._http_factory(), num_retries=0)

        except HttpError as e:
            message = getattr(e, "reason", None) or str(e)
            logger.error(
                "Drive rejected upload",
                extra={
                    "upload_name": filename,
                    "status": e.resp.status if e.resp is not None else None,
                    "error": message,
                }
            )
            return StorageFailure(message=message)

        except Exception as e:
            # Transport errors, token refresh failures, timeouts
            logger.error(
                "Failed to upload to Drive",
                extra={"upload_name": filename, "error": str(e)}
            )
            return StorageFailure(message=str(e) or e.__class__.__name__)

        logger.debug(
            "Uploaded file to Drive",
            extra={
                "file_id": response.get("id"),
                "upload_name": filename,
                "size_bytes": len(data),
            }
        )

        return StoredObject(
            file_id=response["id"],
            name=response.get("name", filename),
        )


def _authorized_http_factory(credentials: Any, timeout_seconds: float) -> Callable[[], Any]:
    def factory() -> Any:
        return google_auth_httplib2.AuthorizedHttp(
            credentials,
            http=httplib2.Http(timeout=timeout_seconds),
        )
    return factory


def create_drive_client(
    credential_blob: Optional[str],
    timeout_seconds: float = 60.0,
) -> DriveStorageClient:
    """
    Parse the service account key and build the Drive capability.

    Raises CredentialError if the key is missing or unusable. The Drive
    discovery document ships with google-api-python-client, so this makes
    no network calls.
    """
    info = parse_service_account_info(credential_blob)
    credentials = build_drive_credentials(info)

    service = build("drive", "v3", credentials=credentials, cache_discovery=False)

    client = DriveStorageClient(
        service=service,
        http_factory=_authorized_http_factory(credentials, timeout_seconds),
        principal=credentials.service_account_email,
    )

    logger.info(
        "Initialized Drive storage client",
        extra={"principal": client.principal}
    )

    return client


# ---------------------------------------------------------------------------
# S3-compatible storage
# ---------------------------------------------------------------------------

class S3StorageClient:
    """
    S3-compatible object storage.

    The destination container is the bucket; the generated filename is the
    object key and is also what we report back as the file id. boto3
    clients are thread-safe, so one client serves every request.
    """

    def __init__(self, s3_client: Any) -> None:
        self._s3_client = s3_client

    async def store(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        container_id: Optional[str] = None,
    ) -> StoreResult:
        """Put one object into the bucket."""
        if not container_id:
            return StorageFailure(message="No destination bucket configured")

        return await asyncio.to_thread(
            self._store_blocking, data, filename, mime_type, container_id
        )

    def _store_blocking(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        bucket: str,
    ) -> StoreResult:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._s3_client.put_object(
                Bucket=bucket,
                Key=filename,
                Body=data,
                ContentType=mime_type,
            )

        except ClientError as e:
            message = e.response.get("Error", {}).get("Message") or str(e)
            logger.error(
                "S3 rejected upload",
                extra={"bucket": bucket, "upload_name": filename, "error": message}
            )
            return StorageFailure(message=message)

        except BotoCoreError as e:
            logger.error(
                "Failed to upload to S3",
                extra={"bucket": bucket, "upload_name": filename, "error": str(e)}
            )
            return StorageFailure(message=str(e))

        logger.debug(
            "Uploaded object",
            extra={"bucket": bucket, "upload_name": filename, "size_bytes": len(data)}
        )

        return StoredObject(file_id=filename, name=filename)


def create_s3_client(
    credential_blob: Optional[str],
    timeout_seconds: float = 60.0,
) -> S3StorageClient:
    """
    Build an S3 client from an access key blob.

    We import boto3 here (not at module level) because only the s3
    backend needs it.
    """
    import boto3
    from botocore.config import Config

    creds: S3Credentials = parse_s3_credentials(credential_blob)

    # R2 and MinIO want v4 signatures and path-style addressing; the
    # retry budget of 1 keeps botocore from silently re-sending a write.
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": "path"},
        connect_timeout=timeout_seconds,
        read_timeout=timeout_seconds,
        retries={"total_max_attempts": 1},
    )

    region = creds.region or ("auto" if creds.endpoint_url else "us-east-1")

    s3_client = boto3.client(
        "s3",
        endpoint_url=creds.endpoint_url,
        aws_access_key_id=creds.access_key_id,
        aws_secret_access_key=creds.secret_access_key,
        region_name=region,
        config=boto_config,
    )

    logger.info(
        "Initialized S3 storage client",
        extra={"endpoint": creds.endpoint_url, "region": region}
    )

    return S3StorageClient(s3_client)


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Lets the full upload flow run without a service account. Objects are
    kept in a dict keyed by a generated id and are lost on restart.
    Nothing is ever evicted, so memory grows with every upload for the
    life of the process.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self) -> None:
        self._objects: dict[str, tuple[str, bytes]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def store(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        container_id: Optional[str] = None,
    ) -> StoreResult:
        """Store object in memory."""
        file_id = uuid4().hex
        self._objects[file_id] = (filename, data)

        logger.debug(
            "Stored object in mock storage",
            extra={"file_id": file_id, "upload_name": filename, "size_bytes": len(data)}
        )

        return StoredObject(file_id=file_id, name=filename)

    def get(self, file_id: str) -> tuple[str, bytes]:
        """Return (name, data) for a stored object."""
        if file_id not in self._objects:
            raise KeyError(f"Object not found: {file_id}")
        return self._objects[file_id]

    def __len__(self) -> int:
        return len(self._objects)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    backend: str,
    credential_blob: Optional[str] = None,
    timeout_seconds: float = 60.0,
) -> ObjectStore:
    """
    Create the storage capability for the configured backend.

    Args:
        backend: "drive", "s3" or "mock"
        credential_blob: Service account JSON / S3 key JSON (ignored for mock)
        timeout_seconds: Socket timeout for each write

    Returns:
        ObjectStore implementation

    Raises:
        CredentialError: credentials missing or malformed
        ValueError: unknown backend name
    """
    if backend == "mock":
        return MockStorageClient()

    if backend == "s3":
        return create_s3_client(credential_blob, timeout_seconds)

    if backend == "drive":
        return create_drive_client(credential_blob, timeout_seconds)

    raise ValueError(f"Unknown storage backend: {backend}")
