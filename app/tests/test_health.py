def test_health_echoes_request_id(client):
    r = client.get("/api/health", headers={"X-Request-Id": "abc-123"})

    assert r.status_code == 200
    assert r.json() == {"status": "ok", "request_id": "abc-123"}
    assert r.headers["X-Request-Id"] == "abc-123"


def test_health_generates_request_id(client):
    r = client.get("/api/health")

    assert r.status_code == 200
    assert r.headers["X-Request-Id"]
    assert r.json()["request_id"] == r.headers["X-Request-Id"]
