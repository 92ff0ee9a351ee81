"""Shared pytest fixtures for profile-images tests."""

import sys
from pathlib import Path

import httpx
import pytest

# Ensure the package and services are importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from profile_images import config
from profile_images.config import Settings
from profile_images.profile_store import InMemoryProfileStore
from profile_images.storage import LocalImageStore
from profile_images.utils.metrics import reset_metrics

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class RecordingHandler:
    """httpx.MockTransport handler that records every requested URL."""

    def __init__(self, status_code=200, content=PNG_BYTES, exc=None, headers=None):
        self.status_code = status_code
        self.content = content
        self.exc = exc
        self.headers = headers or {}
        self.requested = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requested.append(str(request.url))
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status_code, content=self.content, headers=self.headers)


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=False)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Set default env vars for tests."""
    monkeypatch.setattr(config, "SECRETS_DIR", tmp_path / "secrets")
    monkeypatch.setenv("SSRF_DNS_CHECK_ENABLED", "false")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.delenv("ALLOWED_IMAGE_HOSTS", raising=False)
    monkeypatch.delenv("BASE_PATH", raising=False)


@pytest.fixture(autouse=True)
def fresh_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def settings():
    return Settings(ssrf_dns_check_enabled=False)


@pytest.fixture
def image_store(tmp_path):
    return LocalImageStore(upload_dir=tmp_path / "uploads")


@pytest.fixture
def profile_store():
    return InMemoryProfileStore({"42": None, "7": None})


@pytest.fixture
def ok_handler():
    return RecordingHandler()


@pytest.fixture
def handler_factory():
    return RecordingHandler


@pytest.fixture
def client_for():
    return make_client
