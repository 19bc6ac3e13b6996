import pytest
from fastapi.testclient import TestClient

from helpers import ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_USERNAME, basic_auth


@pytest.fixture
def app_settings(tmp_path, monkeypatch):
    from psychprep.config import settings

    monkeypatch.setattr(settings, "database_path", tmp_path / "data" / "test.db")
    monkeypatch.setattr(settings, "upload_dir", tmp_path / "uploads")
    monkeypatch.setattr(settings, "admin_username", ADMIN_USERNAME)
    monkeypatch.setattr(settings, "admin_email", ADMIN_EMAIL)
    monkeypatch.setattr(settings, "admin_password", ADMIN_PASSWORD)
    monkeypatch.setattr(settings, "seed_default_content", True)
    return settings


@pytest.fixture
def client(app_settings):
    from psychprep.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def store(client):
    return client.app.state.store


@pytest.fixture
def admin_headers():
    return basic_auth(ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def empty_store(tmp_path):
    """A store with tables but no accounts or seeded content."""
    from psychprep.db import ContentStore

    s = ContentStore(tmp_path / "bare.db")
    s.init()
    return s
