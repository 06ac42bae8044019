"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode (STORAGE_BACKEND=mock) enables local development without a
service account.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MAX_UPLOAD_BYTES = 8 * 1024 * 1024


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like allowed_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Photo Relay API"
    api_version: str = "v1"
    host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP server binds to"
    )
    port: int = Field(
        default=3000,
        description="Port the HTTP server listens on"
    )

    # Storage backend
    storage_backend: Literal["drive", "s3", "mock"] = Field(
        default="drive",
        description="Where uploads go: Google Drive, an S3-compatible bucket, or in-memory mock."
    )
    service_account_json: Optional[str] = Field(
        default=None,
        description="Credential blob: the service account JSON itself or a path to the key file."
    )
    storage_container_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("storage_container_id", "drive_folder_id"),
        description="Destination Drive folder id, or bucket name for the s3 backend."
    )
    backend_timeout_seconds: float = Field(
        default=60.0,
        description="Socket timeout for a single backend write."
    )

    # Upload handling
    max_upload_bytes: int = Field(
        default=DEFAULT_MAX_UPLOAD_BYTES,
        description="Largest accepted photo payload. Anything bigger is rejected before upload."
    )
    filename_prefix: str = Field(
        default="photo_bal_",
        description="Prefix for generated filenames"
    )
    upload_mime_type: str = Field(
        default="image/jpeg",
        description="Content type recorded for every upload. Payload bytes are not inspected."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    allowed_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed browser origins. '*' allows any origin."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """
        Parse comma-separated origins into a list.

        An empty value means the variable was left unset in practice,
        so it allows any origin rather than none.
        """
        origins = [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return origins or ["*"]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set for the selected backend.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on which backend is in use.
        """
        missing = []

        if self.storage_backend == "mock":
            return missing

        if not self.service_account_json:
            missing.append("SERVICE_ACCOUNT_JSON")

        # Buckets have no implicit default the way a Drive root folder does
        if self.storage_backend == "s3" and not self.storage_container_id:
            missing.append("STORAGE_CONTAINER_ID")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
