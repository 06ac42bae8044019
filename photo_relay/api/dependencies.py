"""
FastAPI dependency injection.

Dependencies provide the storage capability, the relay service and
configuration to route handlers. Using dependency injection means:
- Routes don't construct their own storage clients (easier to test)
- The storage client can be swapped for a fake in tests
- The credential-bearing client is built exactly once, at startup

The storage client lives on app.state. It is created by the application
lifespan (or handed in by the entry point) and never rebuilt per request.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..core.relay import ObjectStore, StorageTarget, UploadRelay
from ..infrastructure.storage.client import create_storage_client
from ..infrastructure.storage.credentials import CredentialError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

def build_storage_client(settings: Settings) -> ObjectStore:
    """
    Build the storage capability from settings.

    Called once per process. Raises CredentialError when required
    configuration is missing or the credential blob is unusable; callers
    treat that as fatal.
    """
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        raise CredentialError(
            f"Missing required configuration: {', '.join(missing_fields)}"
        )

    return create_storage_client(
        backend=settings.storage_backend,
        credential_blob=settings.service_account_json,
        timeout_seconds=settings.backend_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage_client(request: Request) -> ObjectStore:
    """Provide the shared storage client built at startup."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise RuntimeError("Storage client has not been initialised")
    return storage


def get_storage_target(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageTarget:
    return StorageTarget(container_id=settings.storage_container_id)


def get_upload_relay(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[ObjectStore, Depends(get_storage_client)],
    target: Annotated[StorageTarget, Depends(get_storage_target)],
) -> UploadRelay:
    """
    Provide an UploadRelay bound to the shared storage client.

    The relay is stateless, so we create a new instance per request.
    """
    return UploadRelay(
        store=storage,
        target=target,
        max_upload_bytes=settings.max_upload_bytes,
        filename_prefix=settings.filename_prefix,
        mime_type=settings.upload_mime_type,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
StorageClientDep = Annotated[ObjectStore, Depends(get_storage_client)]
UploadRelayDep = Annotated[UploadRelay, Depends(get_upload_relay)]
