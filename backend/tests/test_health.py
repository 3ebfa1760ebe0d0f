def test_health_ok(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/json")
    data = r.json()
    assert data["ok"] is True
    assert data["data"]["service"] == "Inventory API"


def test_db_ping(client):
    r = client.get("/db-ping")
    assert r.status_code == 200
    assert r.json()["data"]["select1"] == 1


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/yok-boyle-bir-yer")
    assert r.status_code == 404
    body = r.json()
    assert body["ok"] is False
    assert body["error"]


def test_protected_route_requires_token(client):
    r = client.get("/inventory")
    assert r.status_code == 401
    assert r.headers.get("www-authenticate") == "Bearer"
    assert r.json()["ok"] is False


def test_validation_errors_are_enveloped(client, admin_headers):
    r = client.post("/stores", json={"Name": ""}, headers=admin_headers)
    assert r.status_code == 422
    body = r.json()
    assert body["ok"] is False
    assert body["error"] == "Validation error"
    assert body["meta"]["errors"]
