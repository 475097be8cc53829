import uuid

import pytest
from fastapi.testclient import TestClient


def test_resources_require_bearer_token(client):
    for path in ("/clients", "/contracts", "/evidence", "/invoices", "/matters"):
        assert client.get(path).status_code == 401


def test_client_crud_round_trip(client, auth_headers):
    r = client.post("/clients", headers=auth_headers, json={"name": "Acme Corp", "client_type": "Business"})
    assert r.status_code == 201
    created = r.json()

    r = client.get(f"/clients/{created['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == created

    r = client.put(f"/clients/{created['id']}", headers=auth_headers, json={"phone": "555-0100"})
    assert r.status_code == 200
    assert r.json()["phone"] == "555-0100"
    assert r.json()["name"] == "Acme Corp"

    r = client.delete(f"/clients/{created['id']}", headers=auth_headers)
    assert r.status_code == 204
    assert client.get(f"/clients/{created['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"/clients/{created['id']}", headers=auth_headers).status_code == 404


def test_missing_ids_are_404(client, auth_headers):
    missing = uuid.uuid4()
    assert client.get(f"/matters/{missing}", headers=auth_headers).status_code == 404
    assert client.put(f"/matters/{missing}", headers=auth_headers, json={"status": "Closed"}).status_code == 404
    assert client.get("/matters/123", headers=auth_headers).status_code == 404


def test_validation_errors_have_field_detail(client, auth_headers):
    r = client.post("/clients", headers=auth_headers, json={"email": "nope"})
    assert r.status_code == 422
    body = r.json()
    assert body["detail"] == "Invalid Client data"
    assert {"name", "email"} <= {e["field"] for e in body["errors"]}

    r = client.post("/clients", headers=auth_headers, json={"name": "Acme", "created_at": "2020-01-01T00:00:00Z"})
    assert r.status_code == 422


@pytest.mark.parametrize(
    "path,payload",
    [
        ("/matters", {"practice_area": "bankruptcy", "title": "Chapter 11 filing"}),
        ("/contracts", {"title": "Master services agreement", "contract_type": "MSA"}),
        ("/evidence", {"case_id": str(uuid.uuid4()), "title": "Email thread", "evidence_type": "Digital"}),
        ("/invoices", {"invoice_number": "INV-7", "client_id": str(uuid.uuid4()), "amount": 1500}),
    ],
)
def test_each_resource_accepts_valid_payload(client, auth_headers, path, payload):
    r = client.post(path, headers=auth_headers, json=payload)
    assert r.status_code == 201, r.text
    listed = client.get(path, headers=auth_headers).json()
    assert listed["total"] == 1
    assert listed["items"][0]["id"] == r.json()["id"]


def test_list_filters_and_paging(client, auth_headers):
    for area in ("bankruptcy", "bankruptcy", "aviation-law"):
        client.post("/matters", headers=auth_headers, json={"practice_area": area, "title": f"{area} matter"})

    r = client.get("/matters", headers=auth_headers, params={"practice_area": "bankruptcy"})
    assert r.json()["total"] == 2

    r = client.get("/matters", headers=auth_headers, params={"practice_area": "tax"})
    assert r.status_code == 200
    assert r.json() == {"items": [], "total": 0}

    r = client.get("/matters", headers=auth_headers, params={"limit": 2, "order_by": "practice_area"})
    body = r.json()
    assert body["total"] == 3
    assert [m["practice_area"] for m in body["items"]] == ["aviation-law", "bankruptcy"]

    assert client.get("/matters", headers=auth_headers, params={"attributes": "x"}).status_code == 422
    assert client.get("/matters", headers=auth_headers, params={"limit": 0}).status_code == 422


def test_duplicate_unique_value_is_a_server_error(client, auth_headers):
    payload = {"invoice_number": "INV-1", "client_id": str(uuid.uuid4()), "amount": 10}
    assert client.post("/invoices", headers=auth_headers, json=payload).status_code == 201

    # store errors are not translated
    with TestClient(client.app, raise_server_exceptions=False) as raw:
        r = raw.post("/invoices", headers=auth_headers, json=payload)
    assert r.status_code == 500
