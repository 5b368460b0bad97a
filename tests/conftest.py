"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- FakeMediaService: an in-process stand-in for the remote media REST API
- FakeUpload: the read/close surface of an incoming multipart file
- Fixtures wiring MediaServices onto the app with mocked transports
"""

from __future__ import annotations

import os

# Environment defaults must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "demo-cloud")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-secret")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

import dataclasses
from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from talkcart_media.core.limiter import limiter
from talkcart_media.core.media_config import MediaConfig
from talkcart_media.main import app
from talkcart_media.services.storage.service import MediaServices, create_media_services

API_PREFIX = "/v1_1/demo-cloud"

PNG_HEADER = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8
JPEG_HEADER = b"\xff\xd8\xff\xe0" + b"\x00" * 12


# ---------------------------------------------------------------------------
# Remote media service fake
# ---------------------------------------------------------------------------


def asset_payload(
    public_id: str = "talkcart/file_1_abc",
    *,
    resource_type: str = "image",
    fmt: str = "png",
    size: int = 1024,
    **overrides: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "public_id": public_id,
        "secure_url": f"https://res.cloudinary.com/demo-cloud/{resource_type}/upload/v1/{public_id}.{fmt}",
        "resource_type": resource_type,
        "format": fmt,
        "width": 640,
        "height": 480,
        "bytes": size,
        "created_at": "2024-05-01T12:00:00Z",
    }
    payload.update(overrides)
    return payload


class FakeMediaService:
    """Routes ``(method, path)`` to canned JSON answers and records every request.

    Paths are given relative to ``/v1_1/<cloud>``. Unrouted calls answer 404 the way
    the remote service does.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, method: str, path: str, *, status: int = 200, json: Any = None) -> "FakeMediaService":
        def _respond(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json=json if json is not None else {})

        self._routes[(method.upper(), f"{API_PREFIX}/{path.lstrip('/')}")] = _respond
        return self

    def on_call(
        self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]
    ) -> "FakeMediaService":
        self._routes[(method.upper(), f"{API_PREFIX}/{path.lstrip('/')}")] = handler
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        full = f"{API_PREFIX}/{path.lstrip('/')}"
        return [r for r in self.requests if r.method == method.upper() and r.url.path == full]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": {"message": "Resource not found"}})
        return handler(request)


class FakeUpload:
    """Minimal async file object: filename, content_type, size, read(), close()."""

    def __init__(
        self,
        content: bytes,
        *,
        filename: str = "photo.png",
        content_type: str | None = "image/png",
        size: int | None = None,
    ) -> None:
        self.filename = filename
        self.content_type = content_type
        self.size = len(content) if size is None else size
        self._content = content
        self._offset = 0
        self.closed = False

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._content) - self._offset
        chunk = self._content[self._offset : self._offset + size]
        self._offset += len(chunk)
        return chunk

    async def close(self) -> None:
        self.closed = True


def make_config(**overrides: Any) -> MediaConfig:
    return dataclasses.replace(MediaConfig.from_settings(), **overrides)


def relay_ok(_request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"GIF89a-bytes", headers={"Content-Type": "image/gif"})


# ---------------------------------------------------------------------------
# Shared pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _disable_rate_limiter(monkeypatch):
    """Uploads are limited per minute; tests exercise far more requests than that."""
    monkeypatch.setattr(limiter, "enabled", False)
    yield


@pytest.fixture
def media_config() -> MediaConfig:
    return make_config()


@pytest.fixture
def fake_remote() -> FakeMediaService:
    return FakeMediaService()


@pytest.fixture
def relay_upstream() -> dict[str, Any]:
    """Mutable holder so a test can swap the relay upstream handler."""
    return {"handler": relay_ok, "requests": []}


@pytest.fixture
def media_services(media_config, fake_remote, relay_upstream) -> MediaServices:
    def _relay_transport(request: httpx.Request) -> httpx.Response:
        relay_upstream["requests"].append(request)
        return relay_upstream["handler"](request)

    return create_media_services(
        media_config,
        remote_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_remote)),
        relay_client=httpx.AsyncClient(transport=httpx.MockTransport(_relay_transport)),
    )


@pytest.fixture
def client(media_services) -> TestClient:
    original = getattr(app.state, "media", None)
    app.state.media = media_services
    yield TestClient(app)
    app.state.media = original
