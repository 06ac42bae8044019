"""
Tests for the request body size limit.

The streaming case drives the ASGI app directly so the test controls
exactly how much body the server has pulled when it answers.
"""

import asyncio
import json

import pytest

from photo_relay.api.body_limit import MULTIPART_OVERHEAD_BYTES, declared_length
from photo_relay.main import create_app


BOUNDARY = "relayboundary"
CHUNK_SIZE = 64 * 1024


def multipart_body(payload: bytes) -> bytes:
    head = (
        f"--{BOUNDARY}\r\n"
        'Content-Disposition: form-data; name="photo"; filename="photo.jpg"\r\n'
        "Content-Type: image/jpeg\r\n\r\n"
    ).encode("ascii")
    return head + payload + f"\r\n--{BOUNDARY}--\r\n".encode("ascii")


def stream_upload(app, body: bytes) -> dict:
    """
    Send `body` to POST /upload in CHUNK_SIZE pieces with no Content-Length.

    Returns the response status and body, the number of chunks pulled
    before the response started, and the total number of chunks.
    """
    chunks = [body[i:i + CHUNK_SIZE] for i in range(0, len(body), CHUNK_SIZE)]
    outcome = {"pulled": 0, "pulled_at_response": None, "total": len(chunks), "body": b""}

    async def receive():
        if outcome["pulled"] < len(chunks):
            chunk = chunks[outcome["pulled"]]
            outcome["pulled"] += 1
            return {
                "type": "http.request",
                "body": chunk,
                "more_body": outcome["pulled"] < len(chunks),
            }
        # The client stays connected until the whole response is out
        await finished.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        if message["type"] == "http.response.start":
            outcome["status"] = message["status"]
            outcome["pulled_at_response"] = outcome["pulled"]
        elif message["type"] == "http.response.body":
            outcome["body"] += message.get("body", b"")
            if not message.get("more_body", False):
                finished.set()

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/upload",
        "raw_path": b"/upload",
        "query_string": b"",
        "root_path": "",
        "headers": [
            (b"host", b"testserver"),
            (b"content-type", f"multipart/form-data; boundary={BOUNDARY}".encode("ascii")),
        ],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }

    async def main():
        nonlocal finished
        finished = asyncio.Event()
        await app(scope, receive, send)

    finished = None
    asyncio.run(main())
    return outcome


class TestDeclaredLength:
    """Tests for reading Content-Length from the ASGI scope."""

    def test_reads_header(self):
        assert declared_length({"headers": [(b"content-length", b"1234")]}) == 1234

    @pytest.mark.parametrize("headers", [[], [(b"content-length", b"lots")]])
    def test_absent_or_garbled_is_none(self, headers):
        assert declared_length({"headers": headers}) is None


class TestBodySizeLimit:
    """Tests for bounding the body before the upload route sees it."""

    def test_oversized_content_length_is_refused_up_front(self, client_factory, store):
        client = client_factory(store, max_upload_bytes=10)

        response = client.post(
            "/upload",
            files={"photo": ("photo.jpg", b"x" * (MULTIPART_OVERHEAD_BYTES + 100), "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "File too large. Maximum size is 10 bytes"}
        assert store.calls == []

    def test_streamed_body_is_cut_off_past_the_limit(self, settings_factory, store):
        """A body without Content-Length stops being read once it passes the limit."""
        app = create_app(settings=settings_factory(max_upload_bytes=10), storage=store)

        outcome = stream_upload(app, multipart_body(b"\x00" * 5_000_000))

        assert outcome["status"] == 400
        assert "too large" in json.loads(outcome["body"])["error"]
        assert outcome["pulled_at_response"] <= 2
        assert outcome["pulled_at_response"] < outcome["total"]
        assert store.calls == []

    def test_streamed_body_within_limit_is_relayed(self, settings_factory, store):
        app = create_app(settings=settings_factory(max_upload_bytes=200_000), storage=store)

        outcome = stream_upload(app, multipart_body(b"\x00" * 150_000))

        assert outcome["status"] == 200
        assert outcome["pulled_at_response"] == outcome["total"]
        assert len(store.calls) == 1
        assert len(store.calls[0]["data"]) == 150_000

    def test_rejection_keeps_cors_headers(self, client_factory, store):
        client = client_factory(store, max_upload_bytes=10, allowed_origins="https://good.example")

        response = client.post(
            "/upload",
            files={"photo": ("photo.jpg", b"x" * (MULTIPART_OVERHEAD_BYTES + 100), "image/jpeg")},
            headers={"Origin": "https://good.example"},
        )

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "https://good.example"
