"""Tests for the profile image gateway service."""

import logging

import pytest
from fastapi.testclient import TestClient

from profile_images.config import Settings
from profile_images.profile_store import InMemoryProfileStore
from services.profile_image_gateway.main import SERVICE_NAME, InMemorySessionStore, create_app


@pytest.fixture(autouse=True)
def restore_log_propagation():
    loggers = [logging.getLogger("profile_images"), logging.getLogger(SERVICE_NAME)]
    saved = [(lg, lg.propagate, list(lg.handlers)) for lg in loggers]
    yield
    for lg, propagate, handlers in saved:
        lg.propagate = propagate
        lg.handlers[:] = handlers


@pytest.fixture
def gateway(profile_store, image_store, client_for, handler_factory):
    def _gateway(handler=None, base_path="", store=None):
        handler = handler or handler_factory()
        sessions = InMemorySessionStore()
        sessions.login("valid-token", "42")
        app = create_app(
            settings=Settings(ssrf_dns_check_enabled=False, base_path=base_path),
            profile_store=store or profile_store,
            client=client_for(handler),
            image_store=image_store,
            sessions=sessions,
        )
        return TestClient(app), handler
    return _gateway


def _post(client, payload, token="valid-token"):
    if token:
        client.cookies.set("token", token)
    return client.post("/profile/image/url", json=payload, follow_redirects=False)


class TestProfileImageUrlUpload:
    def test_success_redirects_to_profile(self, gateway, profile_store):
        client, handler = gateway()
        with client:
            response = _post(client, {"imageUrl": "https://i.imgur.com/abc123.jpg"})
        assert response.status_code == 302
        assert response.headers["location"] == "/profile"
        assert profile_store.profiles["42"] == "/assets/public/images/uploads/42.jpg"
        assert handler.requested == ["https://i.imgur.com/abc123.jpg"]

    def test_form_encoded_body(self, gateway, profile_store):
        client, _ = gateway()
        with client:
            client.cookies.set("token", "valid-token")
            response = client.post(
                "/profile/image/url",
                data={"imageUrl": "https://cdn.example.com/images/me.png"},
                follow_redirects=False,
            )
        assert response.status_code == 302
        assert profile_store.profiles["42"] == "/assets/public/images/uploads/42.png"

    def test_base_path_prefixes_redirect(self, gateway):
        client, _ = gateway(base_path="/shop")
        with client:
            response = _post(client, {"imageUrl": "https://i.imgur.com/abc123.jpg"})
        assert response.headers["location"] == "/shop/profile"

    def test_missing_image_url_just_redirects(self, gateway, profile_store):
        client, handler = gateway()
        with client:
            response = _post(client, {})
        assert response.status_code == 302
        assert handler.requested == []
        assert profile_store.updates == []

    def test_fallback_still_redirects(self, gateway, handler_factory, profile_store):
        client, _ = gateway(handler=handler_factory(status_code=404))
        with client:
            response = _post(client, {"imageUrl": "https://imgur.com/abc123"})
        assert response.status_code == 302
        assert profile_store.profiles["42"] == "https://imgur.com/abc123"

    def test_without_session_is_unauthorized(self, gateway, profile_store):
        client, handler = gateway()
        with client:
            response = _post(client, {"imageUrl": "https://i.imgur.com/abc123.jpg"}, token=None)
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert handler.requested == []

    def test_unknown_session_is_unauthorized(self, gateway):
        client, _ = gateway()
        with client:
            response = _post(client, {"imageUrl": "https://i.imgur.com/abc123.jpg"}, token="forged")
        assert response.status_code == 401

    @pytest.mark.parametrize("url,code", [
        ("https://evil.com/a.jpg", "host_not_allowed"),
        ("not a url", "malformed_url"),
        ("file:///etc/passwd", "scheme_not_allowed"),
        ("https://i.imgur.com/abc123.exe", "invalid_identifier"),
    ])
    def test_rejections_map_to_bad_request(self, gateway, url, code):
        client, handler = gateway()
        with client:
            response = _post(client, {"imageUrl": url})
        assert response.status_code == 400
        assert response.json()["error"] == code
        assert handler.requested == []

    def test_non_string_url_rejected(self, gateway):
        client, _ = gateway()
        with client:
            response = _post(client, {"imageUrl": ["https://i.imgur.com/abc123.jpg"]})
        assert response.status_code == 400
        assert response.json()["error"] == "malformed_url"

    def test_persist_failure_is_server_error(self, gateway, handler_factory):
        client, _ = gateway(handler=handler_factory(status_code=404), store=InMemoryProfileStore())
        with client:
            response = _post(client, {"imageUrl": "https://imgur.com/abc123"})
        assert response.status_code == 500
        assert response.json() == {"error": "persist_failed", "detail": "Could not update the profile image."}


class TestOperationalEndpoints:
    def test_health(self, gateway):
        client, _ = gateway()
        with client:
            assert client.get("/health").json() == {"status": "healthy", "service": "profile_image_gateway"}

    def test_metrics(self, gateway):
        client, _ = gateway()
        with client:
            _post(client, {"imageUrl": "https://evil.com/a.jpg"})
            metrics = client.get("/metrics").json()
        assert metrics["rejections"] == {"host_not_allowed": 1}

    def test_logging_configured_on_startup_only(self, gateway):
        client, _ = gateway()
        package_logger = logging.getLogger("profile_images")
        assert package_logger.propagate is True
        with client:
            assert package_logger.propagate is False
