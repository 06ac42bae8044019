"""
Tests for environment-driven configuration.
"""

from photo_relay.config.settings import DEFAULT_MAX_UPLOAD_BYTES, Settings


class TestSettingsFromEnvironment:
    """Tests for reading the deployment environment variables."""

    def test_defaults(self, monkeypatch):
        for name in ("SERVICE_ACCOUNT_JSON", "DRIVE_FOLDER_ID", "ALLOWED_ORIGINS", "PORT", "STORAGE_BACKEND", "STORAGE_CONTAINER_ID"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.port == 3000
        assert settings.storage_backend == "drive"
        assert settings.allowed_origins_list == ["*"]
        assert settings.max_upload_bytes == DEFAULT_MAX_UPLOAD_BYTES == 8 * 1024 * 1024
        assert settings.storage_container_id is None

    def test_reads_deployment_variables(self, monkeypatch):
        monkeypatch.setenv("SERVICE_ACCOUNT_JSON", '{"client_email": "x"}')
        monkeypatch.setenv("DRIVE_FOLDER_ID", "folder-123")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")
        monkeypatch.setenv("PORT", "8080")

        settings = Settings(_env_file=None)

        assert settings.service_account_json == '{"client_email": "x"}'
        assert settings.storage_container_id == "folder-123"
        assert settings.allowed_origins_list == ["https://a.example", "https://b.example"]
        assert settings.port == 8080

    def test_blank_allowed_origins_allows_any(self):
        """An empty ALLOWED_ORIGINS behaves like an unset one."""
        for blank in ("", " ", " , "):
            settings = Settings(_env_file=None, allowed_origins=blank)
            assert settings.allowed_origins_list == ["*"]


class TestValidateRequiredFields:
    """Tests for per-backend required configuration."""

    def test_drive_needs_credentials(self):
        settings = Settings(_env_file=None, storage_backend="drive", service_account_json=None)
        assert settings.validate_required_fields() == ["SERVICE_ACCOUNT_JSON"]

    def test_drive_folder_is_optional(self):
        settings = Settings(_env_file=None, storage_backend="drive", service_account_json="{}", storage_container_id=None)
        assert settings.validate_required_fields() == []

    def test_s3_needs_bucket(self):
        settings = Settings(_env_file=None, storage_backend="s3", service_account_json="{}", storage_container_id=None)
        assert settings.validate_required_fields() == ["STORAGE_CONTAINER_ID"]

    def test_mock_needs_nothing(self):
        settings = Settings(_env_file=None, storage_backend="mock", service_account_json=None)
        assert settings.validate_required_fields() == []
