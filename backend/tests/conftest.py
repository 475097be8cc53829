import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine, select

from lexdesk.core.config import Settings, get_settings
from lexdesk.db import session as session_mod
from lexdesk.db.session import get_session, init_db
from lexdesk.main import app
from lexdesk.models.user import User

PASSWORD = "Str0ng!Pass"


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        jwt_secret_key="test-secret",
        jwt_refresh_secret_key="test-refresh-secret",
        report_dir=str(tmp_path / "reports"),
    )


@pytest.fixture()
def engine():
    # one shared in-memory database per test
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture()
def client(engine, settings, monkeypatch):
    def override_get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = lambda: settings
    # startup hook creates tables on the module engine
    monkeypatch.setattr(session_mod, "engine", engine, raising=False)

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def register(client, username="jdoe", password=PASSWORD, **profile):
    r = client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password, **profile},
    )
    assert r.status_code == 201, r.text
    return r.json()


def grant_roles(engine, username, *roles):
    with Session(engine) as s:
        user = s.exec(select(User).where(User.username == username)).one()
        user.roles = [*user.roles, *roles]
        s.add(user)
        s.commit()


def login(client, username="jdoe", password=PASSWORD):
    return client.post("/auth/login", json={"username": username, "password": password})


@pytest.fixture()
def auth_headers(client):
    register(client)
    r = login(client)
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['tokens']['access_token']}"}
