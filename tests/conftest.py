"""
Shared fixtures.

Nothing here talks to a real storage backend: HTTP tests swap in a
recording fake, and service account keys are generated on the fly.
"""

import json
from typing import Optional

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from photo_relay.config.settings import Settings
from photo_relay.core.relay import StorageFailure, StoredObject, StoreResult
from photo_relay.main import create_app


class RecordingStore:
    """
    ObjectStore fake that records every call.

    Returns StoredObject("file-<n>", filename) by default. Set `result` to
    force a specific outcome, or `error` to make store() raise.
    """

    def __init__(
        self,
        result: Optional[StoreResult] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    async def store(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        container_id: Optional[str] = None,
    ) -> StoreResult:
        self.calls.append({
            "data": data,
            "filename": filename,
            "mime_type": mime_type,
            "container_id": container_id,
        })
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return StoredObject(file_id=f"file-{len(self.calls)}", name=filename)


def make_settings(**overrides) -> Settings:
    """Settings that ignore any local .env file."""
    values = {"storage_backend": "mock", "allowed_origins": "*"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(store, **overrides) -> TestClient:
    app = create_app(settings=make_settings(**overrides), storage=store)
    return TestClient(app)


@pytest.fixture
def client_factory():
    """Build a TestClient around a given store with settings overrides."""
    return make_client


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def failing_store() -> RecordingStore:
    return RecordingStore(result=StorageFailure(message="The user's Drive storage quota has been exceeded."))


@pytest.fixture
def client(store: RecordingStore) -> TestClient:
    return make_client(store)


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def service_account_info(private_key_pem: str) -> dict:
    return {
        "type": "service_account",
        "project_id": "photo-relay-test",
        "private_key_id": "abc123",
        "private_key": private_key_pem,
        "client_email": "relay@photo-relay-test.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@pytest.fixture
def service_account_json(service_account_info: dict) -> str:
    return json.dumps(service_account_info)


@pytest.fixture
def raising_store() -> RecordingStore:
    return RecordingStore(error=RuntimeError("connection reset by peer"))
