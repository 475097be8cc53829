from conftest import PASSWORD, login, register


def test_register_returns_summary_without_password(client):
    body = register(client, first_name="Jane", last_name="Doe")
    user = body["user"]
    assert user["username"] == "jdoe"
    assert user["full_name"] == "Jane Doe"
    assert "hashed_password" not in user
    assert "password" not in user
    assert body["tokens"]["token_type"] == "bearer"


def test_register_validation_and_conflict(client):
    r = client.post("/auth/register", json={"username": "jd", "email": "bad", "password": "short"})
    assert r.status_code == 422
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"username", "email", "password"} <= fields

    register(client)
    r = client.post(
        "/auth/register",
        json={"username": "jdoe", "email": "new@example.com", "password": PASSWORD},
    )
    assert r.status_code == 409


def test_login_and_me(client):
    register(client)
    r = login(client)
    assert r.status_code == 200
    body = r.json()
    assert body["session_id"].startswith("SES-")

    headers = {"Authorization": f"Bearer {body['tokens']['access_token']}"}
    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["username"] == "jdoe"
    # one session from register, one from login
    assert me.json()["active_sessions"] == 2
    assert me.json()["last_login"] is not None


def test_login_requires_exactly_one_identifier(client):
    r = client.post("/auth/login", json={"password": PASSWORD})
    assert r.status_code == 422
    r = client.post("/auth/login", json={"username": "a", "email": "a@example.com", "password": PASSWORD})
    assert r.status_code == 422


def test_bad_credentials_are_401(client):
    register(client)
    assert login(client, password="Wr0ng!Pass").status_code == 401
    assert login(client, username="ghost").status_code == 401


def test_lockout_returns_403_with_retry_after(client, settings):
    register(client)
    for _ in range(settings.max_login_attempts - 1):
        assert login(client, password="Wr0ng!Pass").status_code == 401

    r = login(client, password="Wr0ng!Pass")
    assert r.status_code == 403
    assert r.json()["code"] == "ACCOUNT_LOCKED"
    retry_after = int(r.headers["retry-after"])
    assert 0 < retry_after <= settings.lockout_minutes * 60

    # right password, still locked
    r = login(client)
    assert r.status_code == 403


def test_logout_revokes_access_token(client):
    register(client)
    tokens = login(client).json()["tokens"]
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    r = client.post("/auth/logout", headers=headers)
    assert r.status_code == 200
    assert r.json()["session_ended"] is True

    r = client.get("/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["code"] == "SESSION_ENDED"

    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 401


def test_logout_ends_only_the_calling_tokens_session(client):
    registered = register(client)
    register_headers = {"Authorization": f"Bearer {registered['tokens']['access_token']}"}
    laptop = login(client).json()
    laptop_headers = {"Authorization": f"Bearer {laptop['tokens']['access_token']}"}
    assert registered["session_id"] != laptop["session_id"]

    r = client.post("/auth/logout", headers=register_headers)
    assert r.json() == {"logged_out": True, "session_ended": True}

    assert client.get("/auth/me", headers=register_headers).status_code == 401
    me = client.get("/auth/me", headers=laptop_headers)
    assert me.status_code == 200
    assert me.json()["active_sessions"] == 1


def test_logout_cannot_end_another_users_session(client):
    register(client, username="jdoe")
    register(client, username="asmith")
    jdoe = login(client, username="jdoe").json()
    asmith = login(client, username="asmith").json()
    headers = {"Authorization": f"Bearer {jdoe['tokens']['access_token']}"}

    r = client.post("/auth/logout", headers=headers, json={"session_id": asmith["session_id"]})
    assert r.json()["session_ended"] is False

    asmith_headers = {"Authorization": f"Bearer {asmith['tokens']['access_token']}"}
    assert client.get("/auth/me", headers=asmith_headers).status_code == 200


def test_refresh_issues_working_tokens(client):
    register(client)
    tokens = login(client).json()["tokens"]
    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    headers = {"Authorization": f"Bearer {r.json()['access_token']}"}
    assert client.get("/auth/me", headers=headers).status_code == 200

    r = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert r.status_code == 401


def test_change_password(client, auth_headers):
    r = client.put(
        "/auth/change-password",
        headers=auth_headers,
        json={"current_password": PASSWORD, "new_password": "N3w!Password", "confirm_password": "N3w!Password"},
    )
    assert r.status_code == 200
    assert login(client).status_code == 401
    assert login(client, password="N3w!Password").status_code == 200

    r = client.put(
        "/auth/change-password",
        headers=auth_headers,
        json={"current_password": "N3w!Password", "new_password": "N3w!Password2", "confirm_password": "nope"},
    )
    assert r.status_code == 422


def test_missing_or_garbage_token_is_401(client):
    r = client.get("/auth/me")
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"

    r = client.get("/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"
