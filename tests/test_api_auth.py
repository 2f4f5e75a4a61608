from constants import TOKEN_HEADER

from conftest import auth_headers, register_and_login


def test_health_needs_no_token(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_register_login_me(client):
    response = client.post("/api/auth/register", json={"username": "alice", "password": "secret1"})
    assert response.status_code == 201
    assert response.json() == {"ok": True}

    response = client.post("/api/auth/login", json={"username": "alice", "password": "secret1"})
    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "alice"
    assert len(body["token"]) >= 32

    response = client.get("/api/me", headers=auth_headers(body["token"]))
    assert response.status_code == 200
    assert response.json()["username"] == "alice"


def test_register_errors(client):
    assert client.post("/api/auth/register", json={"username": "alice", "password": "secret1"}).status_code == 201

    response = client.post("/api/auth/register", json={"username": "alice", "password": "secret1"})
    assert response.status_code == 409
    assert "error" in response.json()

    response = client.post("/api/auth/register", json={"username": "a!", "password": "secret1"})
    assert response.status_code == 400

    response = client.post("/api/auth/register", json={})
    assert response.status_code == 400


def test_login_bad_credentials(client):
    register_and_login(client, "alice")
    response = client.post("/api/auth/login", json={"username": "alice", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid username or password"}


def test_missing_or_unknown_token(client):
    assert client.get("/api/me").status_code == 401
    response = client.get("/api/rooms", headers={TOKEN_HEADER: "forged"})
    assert response.status_code == 401
    assert "error" in response.json()


def test_relogin_invalidates_old_token(client):
    old = register_and_login(client, "alice")
    new = client.post("/api/auth/login", json={"username": "alice", "password": "secret1"}).json()["token"]
    assert client.get("/api/me", headers=old).status_code == 401
    assert client.get("/api/me", headers=auth_headers(new)).status_code == 200


def test_logout(client):
    headers = register_and_login(client, "alice")
    response = client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert client.get("/api/me", headers=headers).status_code == 401


def test_guest_endpoint_disabled_in_password_mode(client):
    response = client.post("/api/auth/guest", json={"username": "visitor"})
    assert response.status_code == 404


def test_guest_mode(guest_client):
    response = guest_client.post("/api/auth/guest", json={"username": "Visitor"})
    assert response.status_code == 201
    body = response.json()
    assert body["username"] == "visitor"

    rooms = guest_client.get("/api/rooms", headers=auth_headers(body["token"])).json()["rooms"]
    assert [r["id"] for r in rooms] == ["general", "ideas", "support"]

    assert guest_client.post("/api/auth/guest", json={"username": "  "}).status_code == 400
    assert guest_client.post("/api/auth/register", json={"username": "alice", "password": "secret1"}).status_code == 404
    assert guest_client.post("/api/auth/login", json={"username": "alice", "password": "secret1"}).status_code == 404


def test_user_search(client):
    alice = register_and_login(client, "alice")
    for name in ("bob", "bobby", "carol"):
        register_and_login(client, name)

    response = client.get("/api/users/search", params={"q": "bo"}, headers=alice)
    assert response.status_code == 200
    assert [u["username"] for u in response.json()["users"]] == ["bob", "bobby"]

    everyone = client.get("/api/users/search", headers=alice).json()["users"]
    assert "alice" not in [u["username"] for u in everyone]


def test_oversized_body_is_rejected(client):
    headers = register_and_login(client, "alice")
    response = client.post(
        "/api/messages",
        content=b'{"roomId": "general", "text": "' + b"x" * 1_000_001 + b'"}',
        headers={**headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json() == {"error": "Body too large"}


def chunked(payload: bytes, size: int = 64 * 1024):
    for start in range(0, len(payload), size):
        yield payload[start:start + size]


def test_oversized_chunked_body_is_rejected(client):
    headers = register_and_login(client, "alice")
    payload = b'{"roomId": "general", "text": "' + b"x" * 2_000_000 + b'"}'
    response = client.post(
        "/api/messages",
        content=chunked(payload),
        headers={**headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json() == {"error": "Body too large"}

    messages = client.get("/api/messages", params={"roomId": "general"}, headers=headers).json()["messages"]
    assert [m["author"] for m in messages] == ["Kovers Bot"]


def test_small_chunked_body_reaches_the_endpoint(client):
    headers = register_and_login(client, "alice")
    payload = b'{"roomId": "general", "text": "' + b"y" * 3000 + b'"}'
    response = client.post(
        "/api/messages",
        content=chunked(payload, size=1024),
        headers={**headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 201
    assert response.json()["message"]["text"] == "y" * 1500


def test_malformed_json_is_a_validation_error(client):
    headers = register_and_login(client, "alice")
    response = client.post("/api/rooms", content=b"{oops", headers={**headers, "Content-Type": "application/json"})
    assert response.status_code == 400
    assert "error" in response.json()
