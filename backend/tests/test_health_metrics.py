import uuid


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_metrics(client):
    r = client.get("/metrics")
    assert r.status_code == 200
    assert r.headers.get("content-type", "").startswith("text/plain")
    assert "api_request_latency_seconds" in r.text


def test_latency_is_labelled_by_route_template(client, auth_headers):
    client.get(f"/cases/{uuid.uuid4()}", headers=auth_headers)
    body = client.get("/metrics").text
    assert 'route="/cases/{case_id}"' in body


def test_login_and_write_counters(client, auth_headers):
    client.post("/clients", headers=auth_headers, json={"name": "Acme"})
    body = client.get("/metrics").text
    assert 'login_attempts_total{outcome="success"}' in body
    assert 'entity_writes_total{entity="Client",op="create"}' in body
