"""Pytest configuration shared across the suite."""

from __future__ import annotations

import pytest

from api import create_app
from utils.security import hash_password


class FakeGenerativeClient:
    """Records prompts instead of calling Gemini."""

    def __init__(self, reply: str = "Great question!") -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []
        self.error: Exception | None = None

    def generate_text(self, prompt: str, api_key: str) -> str:
        self.calls.append((prompt, api_key))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def sandbox_dir(tmp_path):
    return tmp_path / "sandbox"


@pytest.fixture
def make_app(sandbox_dir):
    def _make(**overrides):
        settings = {"SANDBOX_DIR": str(sandbox_dir)}
        settings.update(overrides)
        app = create_app("testing", overrides=settings)
        app.extensions["generative_client"] = FakeGenerativeClient()
        return app

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    with app.app_context():
        yield app.extensions["user_store"]


@pytest.fixture
def user(app):
    """Identity "a" whose password is "p"."""
    with app.app_context():
        return app.extensions["user_store"].create("a", hash_password("p"))


@pytest.fixture
def logged_in(client, user):
    response = client.post("/api/login", json={"username": "a", "password": "p"})
    assert response.status_code == 200
    return response.get_json()
