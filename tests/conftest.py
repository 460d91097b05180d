"""Shared fixtures: isolated settings, a temporary database and an API client."""

import pytest
from fastapi.testclient import TestClient

from snefuru.infrastructure.config import get_settings
from snefuru.infrastructure.persistence import init_database

ENV_VARS_TO_CLEAR = (
    "OPENAI_API_KEY",
    "OPENAI_API_BASE",
    "AWS_S3_BUCKET",
    "AWS_S3_PREFIX",
    "DROPBOX_ACCESS_TOKEN",
    "GOOGLE_DRIVE_CLIENT_ID",
    "GOOGLE_DRIVE_CLIENT_SECRET",
    "GOOGLE_DRIVE_REFRESH_TOKEN",
    "GOOGLE_DRIVE_FOLDER_ID",
    "SCRAPERAPI_KEY",
)

TEST_PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Every test gets its own database file and no real credentials."""
    monkeypatch.setenv("SNEFURU_DATABASE", str(tmp_path / "snefuru-test.db"))
    monkeypatch.setenv("SNEFURU_SECRET_KEY", "test-secret-key")
    for name in ENV_VARS_TO_CLEAR:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db(tmp_path):
    """Standalone database for repository and pipeline tests."""
    return init_database(str(tmp_path / "standalone.db"))


@pytest.fixture
def app():
    from snefuru.web.app import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """TestClient with the lifespan running (database created from settings)."""
    with TestClient(app) as test_client:
        yield test_client


def register_and_login(client, email="ada@example.com", username="ada"):
    """Create an account through the API and return its bearer headers."""
    response = client.post("/api/auth/register", json={
        "email": email,
        "username": username,
        "password": TEST_PASSWORD,
        "confirm_password": TEST_PASSWORD,
        "terms_accepted": True,
    })
    assert response.status_code == 201, response.text

    response = client.post("/api/auth/login", json={"email": email, "password": TEST_PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def auth_headers(client):
    return register_and_login(client)


@pytest.fixture
def other_auth_headers(client):
    return register_and_login(client, email="grace@example.com", username="grace")
