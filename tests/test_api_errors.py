import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import FileSnapshotGateway
from errors import StorageError

ORIGIN = "http://chat.example.org"


class BreakableGateway(FileSnapshotGateway):
    """File gateway whose flush can be made to raise once the app is running."""

    failure = None

    def flush(self, document: dict):
        if self.failure is not None:
            raise self.failure
        super().flush(document)


@pytest.fixture
def breakable(data_file):
    return BreakableGateway(data_file)


@pytest.fixture
def breakable_client(breakable):
    with TestClient(create_app(auth_mode="password", gateway=breakable)) as test_client:
        yield test_client


def register(client, username):
    return client.post(
        "/api/auth/register",
        json={"username": username, "password": "secret1"},
        headers={"Origin": ORIGIN},
    )


def test_failed_flush_answers_500(breakable_client, breakable):
    breakable.failure = StorageError("Failed to save data")
    response = register(breakable_client, "alice")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to save data"}
    assert "access-control-allow-origin" in response.headers


def test_memory_runs_ahead_of_disk_after_failed_flush(breakable_client, breakable):
    breakable.failure = StorageError("Failed to save data")
    assert register(breakable_client, "alice").status_code == 500

    breakable.failure = None
    # the in-memory user survived the failed write
    assert register(breakable_client, "alice").status_code == 409


def test_unexpected_error_keeps_cors_headers(breakable_client, breakable):
    breakable.failure = RuntimeError("disk on fire")
    response = register(breakable_client, "alice")
    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}
    assert response.headers["access-control-allow-origin"] in ("*", ORIGIN)


def test_unknown_route_uses_error_payload(breakable_client):
    response = breakable_client.get("/api/nowhere")
    assert response.status_code == 404
    assert "error" in response.json()
