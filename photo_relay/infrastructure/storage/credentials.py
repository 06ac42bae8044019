"""
Credential blob parsing for storage backends.

The relay is configured with one secret, SERVICE_ACCOUNT_JSON. For Google
Drive it is a service account key (client_email + private_key); for S3 it
is a small JSON object with an access key pair. Either way it is parsed
once at startup, and any problem is fatal: no request can succeed without
working credentials, so the process should not start serving.

Key material pasted into environment variables is often slightly mangled
(stray whitespace, newlines escaped twice, JSON encoded as a string), so
parsing tries a few repairs before giving up.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from google.oauth2 import service_account

logger = logging.getLogger(__name__)


DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Fields google-auth needs to sign a service account JWT
REQUIRED_SERVICE_ACCOUNT_FIELDS = ("client_email", "private_key")


class CredentialError(Exception):
    """Raised when the credential blob is missing or unusable."""
    pass


@dataclass(frozen=True)
class S3Credentials:
    """Access key pair and endpoint for an S3-compatible store."""
    access_key_id: str
    secret_access_key: str
    endpoint_url: Optional[str] = None
    region: Optional[str] = None


def _read_blob(raw: Optional[str]) -> str:
    """Return the blob text, reading it from disk if `raw` is a key file path."""
    if raw is None or not raw.strip():
        raise CredentialError(
            "SERVICE_ACCOUNT_JSON is missing. Set the service account JSON "
            "(or a path to the key file) in env variable SERVICE_ACCOUNT_JSON."
        )

    candidate = raw.strip()
    if not candidate.startswith("{") and not candidate.startswith('"'):
        path = Path(candidate).expanduser()
        if not path.is_file():
            raise CredentialError(
                "SERVICE_ACCOUNT_JSON is neither JSON nor a path to a readable key file"
            )
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise CredentialError(f"Cannot read credential file {path}: {e}") from e

    return raw


def parse_credential_blob(raw: Optional[str]) -> dict[str, Any]:
    """
    Parse the credential blob into a dict.

    Strategies, in order:
    1. Plain parse of the stripped text (control characters allowed)
    2. Double-encoded JSON (a JSON string containing the JSON object)
    3. Literal "\\n" sequences replaced with real newlines

    Raises CredentialError with every strategy's failure when none works.
    """
    text = _read_blob(raw).strip()
    parsed: Any = None
    parse_errors: list[str] = []

    try:
        parsed = json.loads(text, strict=False)
        if isinstance(parsed, str):
            parsed = json.loads(parsed, strict=False)
    except json.JSONDecodeError as e:
        parse_errors.append(f"standard parse: {e}")
        parsed = None

    if parsed is None:
        try:
            parsed = json.loads(text.replace("\\n", "\n"), strict=False)
        except json.JSONDecodeError as e:
            parse_errors.append(f"newline-fixed parse: {e}")

    if parsed is None:
        raise CredentialError(
            "Failed to parse SERVICE_ACCOUNT_JSON: " + "; ".join(parse_errors)
        )

    if not isinstance(parsed, dict):
        raise CredentialError("SERVICE_ACCOUNT_JSON must be a JSON object")

    return parsed


def parse_service_account_info(raw: Optional[str]) -> dict[str, Any]:
    """
    Parse and sanity-check a Google service account key.

    Only client_email and private_key are strictly needed. token_uri is
    filled in when absent since google-auth refuses keys without it.
    """
    info = parse_credential_blob(raw)

    missing = [field for field in REQUIRED_SERVICE_ACCOUNT_FIELDS if not info.get(field)]
    if missing:
        raise CredentialError(
            f"Service account key is missing required fields: {', '.join(missing)}"
        )

    info = dict(info)
    info.setdefault("token_uri", DEFAULT_TOKEN_URI)

    # Keys copied through shell quoting sometimes keep escaped newlines
    if "\\n" in info["private_key"]:
        info["private_key"] = info["private_key"].replace("\\n", "\n")

    return info


def build_drive_credentials(info: dict[str, Any], scopes: Optional[list[str]] = None):
    """
    Build google-auth service account credentials from parsed key info.

    No network call happens here; the first token is fetched lazily on the
    first upload. A private key that doesn't parse fails immediately.
    """
    try:
        credentials = service_account.Credentials.from_service_account_info(
            info,
            scopes=scopes or DRIVE_SCOPES,
        )
    except (ValueError, TypeError, KeyError) as e:
        raise CredentialError(f"Invalid service account key: {e}") from e

    logger.info(
        "Loaded service account credentials",
        extra={"principal": credentials.service_account_email}
    )

    return credentials


def parse_s3_credentials(raw: Optional[str]) -> S3Credentials:
    """Parse an S3 access key blob."""
    info = parse_credential_blob(raw)

    access_key_id = info.get("access_key_id")
    secret_access_key = info.get("secret_access_key")
    if not access_key_id or not secret_access_key:
        raise CredentialError(
            "S3 credentials must contain access_key_id and secret_access_key"
        )

    return S3Credentials(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        endpoint_url=info.get("endpoint_url") or None,
        region=info.get("region") or None,
    )
