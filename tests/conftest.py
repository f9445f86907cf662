"""
Test fixtures for the drive uploader.
"""
import json
from typing import Dict, List, Optional

import httpx
import pytest

from drive_uploader.auth import StaticTokenAuth
from drive_uploader.client import DriveClient
from drive_uploader.hashing import QuickXorHash
from drive_uploader.retry import RetryPolicy

BASE_URL = "https://graph.test/v1.0"
UPLOAD_URL = "https://upload.test/sessions/abc"
MiB = 1024 * 1024


class FakeDriveService:
    """In-memory stand-in for the drive API, used as an httpx transport handler.

    ``chunk_failures`` maps a 1-based chunk number to statuses returned before
    that chunk is accepted.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.chunk_puts: List[httpx.Request] = []
        self.sessions_created = 0
        self.content_puts = 0
        self.received = bytearray()
        self.chunk_failures: Dict[int, List[int]] = {}
        self.content_failures: List[int] = []
        self.session_failures: List[int] = []
        self.report_hash: Optional[str] = None
        self.users = [
            {"id": "u1", "displayName": "Ada", "mail": "ada@example.com"},
            {"id": "u2", "displayName": "Grace", "userPrincipalName": "grace@example.com"},
        ]

    def _item(self, name: str, data: bytes) -> dict:
        hasher = QuickXorHash()
        hasher.update(data)
        return {
            "id": f"item-{name}",
            "name": name,
            "size": len(data),
            "parentReference": {"path": "/drive/root:/Docs"},
            "file": {"hashes": {"quickXorHash": self.report_hash or hasher.b64digest()}},
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url.endswith(":/createUploadSession"):
            if self.session_failures:
                return httpx.Response(self.session_failures.pop(0), json={"error": "busy"})
            self.sessions_created += 1
            self.received = bytearray()
            return httpx.Response(200, json={
                "uploadUrl": UPLOAD_URL,
                "expirationDateTime": "2030-01-01T00:00:00Z",
                "nextExpectedRanges": ["0-"],
            })

        if url.endswith(":/content"):
            if self.content_failures:
                return httpx.Response(self.content_failures.pop(0), json={"error": "busy"})
            self.content_puts += 1
            name = url.split(":/content")[0].rsplit("/", 1)[-1]
            return httpx.Response(201, json=self._item(name, request.content))

        if url == UPLOAD_URL:
            return self._put_chunk(request)

        if "/users" in url:
            return httpx.Response(200, json={"value": self.users})

        return httpx.Response(404, json={"error": "not found"})

    def _put_chunk(self, request: httpx.Request) -> httpx.Response:
        self.chunk_puts.append(request)
        chunk_number = len({r.headers["Content-Range"] for r in self.chunk_puts})
        pending = self.chunk_failures.get(chunk_number)
        if pending:
            return httpx.Response(pending.pop(0), json={"error": "transient"})

        span, total = request.headers["Content-Range"][len("bytes "):].split("/")
        start, end = (int(v) for v in span.split("-"))
        assert start == len(self.received), "chunks must arrive in order"
        self.received.extend(request.content)

        if end + 1 == int(total):
            return httpx.Response(201, json=self._item("big.bin", bytes(self.received)))
        return httpx.Response(202, content=json.dumps({
            "expirationDateTime": "2030-01-01T00:00:00Z",
            "nextExpectedRanges": [f"{end + 1}-"],
        }))


@pytest.fixture
def fake_service():
    return FakeDriveService()


@pytest.fixture
def http_client(fake_service):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_service))


@pytest.fixture
def drive_client(http_client):
    return DriveClient(
        StaticTokenAuth("test-token"),
        user_id="user-1",
        base_url=BASE_URL,
        http_client=http_client,
    )


@pytest.fixture
def sleeps():
    """Delays requested by retry policies; nothing actually waits."""
    return []


@pytest.fixture
def retry_policy(sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return RetryPolicy(max_retries=3, initial_delay=1.0, max_delay=30.0, sleep=fake_sleep)


@pytest.fixture
def make_file(tmp_path):
    """Create a file of the given size with a repeating byte pattern."""
    def _make(name: str, size: int):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        pattern = bytes(range(251))
        path.write_bytes((pattern * (size // len(pattern) + 1))[:size])
        return path
    return _make
