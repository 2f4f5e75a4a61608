from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import FileSnapshotGateway
from constants import TOKEN_HEADER
from store import ChatStore


class StepClock:
    """Clock that advances a fixed step on every read."""

    def __init__(self, start=None, step_ms=1):
        self.current = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = timedelta(milliseconds=step_ms)

    def __call__(self):
        value = self.current
        self.current = value + self.step
        return value


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "kovers-data.json"


@pytest.fixture
def gateway(data_file):
    return FileSnapshotGateway(data_file)


@pytest.fixture
def store(gateway):
    chat_store = ChatStore(gateway, clock=StepClock())
    chat_store.load()
    return chat_store


@pytest.fixture
def client(gateway):
    with TestClient(create_app(auth_mode="password", gateway=gateway)) as test_client:
        yield test_client


@pytest.fixture
def guest_client(gateway):
    with TestClient(create_app(auth_mode="guest", gateway=gateway)) as test_client:
        yield test_client


def auth_headers(token):
    return {TOKEN_HEADER: token}


def register_and_login(client, username, password="secret1"):
    response = client.post("/api/auth/register", json={"username": username, "password": password})
    assert response.status_code == 201, response.text
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return auth_headers(response.json()["token"])
