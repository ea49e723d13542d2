"""Shared test fixtures and configuration for backend tests."""
import itertools

import pytest
from fastapi.testclient import TestClient

from app.chat.manager import manager
from app.config import AppConfig, AuthSettings, DatabaseSettings, reset_config, set_config
from app.main import app
from app.storage import DuckDBStore

PASSWORD = "Secr3t-pass!"

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def in_memory_backend():
    """Run every test against default config, a fresh in-memory store and
    an empty connection registry.
    """
    set_config(AppConfig(
        database=DatabaseSettings(path=":memory:"),
        auth=AuthSettings(bcrypt_rounds=4),
    ))
    DuckDBStore.reset_instance()
    DuckDBStore.get_instance(":memory:")
    manager.clear()
    yield
    manager.clear()
    DuckDBStore.reset_instance()
    reset_config()


@pytest.fixture
def store():
    return DuckDBStore.get_instance()


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app.

    Entered as a context manager so every request and WebSocket session
    shares one event loop; broadcasts cross between sessions.
    """
    with TestClient(app) as client:
        yield client


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register_user(api_client):
    """Factory registering a user over REST.

    Returns ``{"user": {...}, "token": "..."}``.
    """
    def _register(first_name: str = "Test", last_name: str = "User", **overrides) -> dict:
        n = next(_counter)
        body = {
            "firstName": first_name,
            "lastName": last_name,
            "username": f"{first_name.lower()}{n}",
            "email": f"{first_name.lower()}{n}@example.com",
            "password": PASSWORD,
        }
        body.update(overrides)
        resp = api_client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return {"user": data["user"], "token": data["token"]}

    return _register


@pytest.fixture
def create_room(api_client):
    """Factory creating a room between two registered users over REST."""
    def _create(creator: dict, counterpart: dict) -> dict:
        resp = api_client.post(
            "/api/v1/rooms",
            json={"participantEmail": counterpart["user"]["email"]},
            headers=auth_headers(creator["token"]),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["room"]

    return _create
