import uuid

import pytest

from conftest import PASSWORD, grant_roles
from lexdesk.client import ApiError, LexdeskClient


@pytest.fixture()
def api(client):
    # TestClient is an httpx.Client, so the API client can drive the app in-process
    return LexdeskClient(http=client)


def test_register_login_and_me(api):
    user = api.register("jdoe", "jdoe@example.com", PASSWORD, first_name="Jane")
    assert user["username"] == "jdoe"

    api.login("jdoe@example.com", PASSWORD)
    assert api.session_id.startswith("SES-")
    assert api.me()["first_name"] == "Jane"

    api.refresh()
    assert api.me()["username"] == "jdoe"

    api.logout()
    with pytest.raises(ApiError) as exc:
        api.me()
    assert exc.value.status_code == 401


def test_resource_client(api):
    api.register("jdoe", "jdoe@example.com", PASSWORD)
    clients = api.resource("clients")

    created = clients.create({"name": "Acme Corp"})
    assert clients.get(created["id"])["name"] == "Acme Corp"
    assert clients.get(uuid.uuid4()) is None

    updated = clients.update(created["id"], {"status": "Inactive"})
    assert updated["status"] == "Inactive"
    assert clients.list(status="Inactive")["total"] == 1

    clients.delete(created["id"])
    assert clients.get(created["id"]) is None

    with pytest.raises(ApiError) as exc:
        clients.create({"name": ""})
    assert exc.value.status_code == 422
    assert exc.value.detail == "Invalid Client data"


def test_case_helpers(api, engine):
    api.register("jdoe", "jdoe@example.com", PASSWORD)
    grant_roles(engine, "jdoe", "Attorney")
    api.login("jdoe", PASSWORD)
    case = api.resource("cases").create(
        {"title": "Smith v. Jones", "client_name": "Jane Smith", "matter_type": "Litigation", "practice_area": "Civil"}
    )

    assigned = api.assign_case(case["id"], "jdoe", reason="workload balance")
    assert assigned["assigned_to"] == "jdoe"
    api.add_note(case["id"], "Filed complaint", title="Filing")

    assert [c["id"] for c in api.my_cases()] == [case["id"]]
    assert [c["id"] for c in api.cases_by_status("Open")] == [case["id"]]
    assert api.analytics()["overview"]["total_cases"] == 1

    with pytest.raises(ApiError) as exc:
        api.assign_case(uuid.uuid4(), "jdoe")
    assert exc.value.status_code == 404
