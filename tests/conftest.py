from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from cro.service import CroPipeline, PageSnapshot
from database import Database
from main import create_app
from models.user import UserCreate
from repositories.analysis import AnalysisRepository
from repositories.user import UserRepository

PASSWORD = "Sup3rSecret!"


class FakePipeline(CroPipeline):
    """Stands in for Playwright, OpenAI and reportlab."""

    def __init__(self):
        self.fail_stage = None
        self.calls = []
        self.reply = "# CRO Audit\n\n## Summary\n- **Clear** headline"

    def scrape_page(self, url, screenshot_path=None):
        self.calls.append(("scrape", url))
        if self.fail_stage == "scrape":
            raise RuntimeError("navigation timeout")
        return PageSnapshot(
            html="<html><body><h1>Buy now</h1></body></html>",
            text="Buy now and save big today",
            title="Landing",
            screenshot_path=screenshot_path,
            load_time=0.25,
        )

    def analyze_page(self, text, html, url):
        self.calls.append(("analyze", url))
        if self.fail_stage == "analyze":
            raise RuntimeError("model unavailable")
        return self.reply

    def render_report(self, text, path):
        self.calls.append(("render", path))
        if self.fail_stage == "render":
            raise RuntimeError("disk full")
        Path(path).write_bytes(b"%PDF-1.4\n% fake report\n")


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        db_type="sqlite",
        db_path=str(tmp_path / "test.db"),
        jwt_secret="test-secret",
        password_hash_rounds=1000,
        reports_dir=str(tmp_path / "reports"),
        first_admin_email="admin@example.com",
        first_admin_password="",
    )


@pytest.fixture
def database(app_settings):
    db = Database(app_settings)
    db.connect()
    yield db
    db.close()


@pytest.fixture
def users(database):
    return UserRepository(database, password_rounds=1000)


@pytest.fixture
def analyses(database):
    return AnalysisRepository(database)


@pytest.fixture
def make_user(users):
    def _make(email="alice@example.com", role="user", password=PASSWORD):
        return users.create(
            UserCreate(email=email, password=password, first_name="Test", last_name="User", role=role)
        )

    return _make


@pytest.fixture
def pipeline():
    return FakePipeline()


@pytest.fixture
def client(app_settings, pipeline):
    app = create_app(app_settings, pipeline=pipeline)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    """Register through the API and return (user_json, auth headers)."""

    def _register(email="alice@example.com", password=PASSWORD):
        resp = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "first_name": "Alice", "last_name": "Smith"},
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["user"], {"Authorization": f"Bearer {body['token']}"}

    return _register


@pytest.fixture
def admin_headers(client):
    client.app.state.users.create(
        UserCreate(email="root@example.com", password=PASSWORD, role="admin")
    )
    resp = client.post("/api/auth/login", json={"email": "root@example.com", "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}
