"""
Shared pytest fixtures.

Every test gets a fresh SQLite database under tmp_path with migrations
applied, plus an admin and two regular users.
"""

import os

# Must be set before projecthub.config is imported
os.environ.setdefault("ENV", "dev")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_STORAGE"] = "disk"

import pytest
from fastapi.testclient import TestClient

from projecthub import config, credentials, db, moderation
from projecthub.auth_context import issue_token
from projecthub.main import app
from projecthub.migrate import run_migrations
from projecthub.models import Role


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(config, "UPLOAD_STORAGE", "disk")
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "http://testserver")
    db.init_engine(f"sqlite:///{tmp_path / 'test.db'}")
    run_migrations()
    yield
    db.get_engine().dispose()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def admin():
    user = credentials.create("Ada Admin", "admin@test.com", "adminpass", role=Role.admin)
    return credentials.to_identity(user)


@pytest.fixture
def user():
    return credentials.register("Uma User", "user@test.com", "userpass")


@pytest.fixture
def other_user():
    return credentials.register("Otto Other", "other@test.com", "otherpass")


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {issue_token(admin)}"}


@pytest.fixture
def user_headers(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def make_project(admin):
    """Factory: create a project by `author` and optionally move it to `status`."""
    counter = {"n": 0}

    def _make(author, status="pending", **overrides):
        counter["n"] += 1
        fields = {
            "title": f"Project {counter['n']}",
            "description": "A student project",
            "category": "web",
            "academic_year": "2024-2025",
        }
        fields.update(overrides)
        project = moderation.create_project(author, moderation.ProjectDraft(**fields))
        if status != "pending":
            project = moderation.transition_status(admin, project.id, status)
        return project

    return _make
