import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from license_webhooks.config import settings

TEST_SECRET = "whsec_test"
TEST_SECONDARY_SECRET = "whsec_previous"

# Override settings for testing
settings.webhook_secret = TEST_SECRET
settings.webhook_secondary_secret = None
settings.webhook_timestamp_tolerance = None

from license_webhooks.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def reset_webhook_settings(monkeypatch):
    """Restore webhook settings between tests to prevent cross-test pollution."""
    monkeypatch.setattr(settings, "webhook_secret", TEST_SECRET)
    monkeypatch.setattr(settings, "webhook_secondary_secret", None)
    monkeypatch.setattr(settings, "webhook_timestamp_tolerance", None)
    yield


@pytest.fixture(scope="function")
def client():
    """FastAPI TestClient for the webhook receiver."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def request_factory():
    """Factory building Starlette requests with a raw body and headers."""

    def _factory(body: bytes = b"", headers: dict = None, path: str = "/webhooks"):
        raw_headers = [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in (headers or {}).items()
        ]
        scope = {
            "type": "http",
            "method": "POST",
            "scheme": "http",
            "server": ("testserver", 80),
            "path": path,
            "query_string": b"",
            "headers": raw_headers,
        }
        sent = False

        async def receive():
            nonlocal sent
            if sent:
                return {"type": "http.disconnect"}
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return _factory
