from fastapi.testclient import TestClient

import headshot.api.main as api_main


def test_health_returns_ok_when_storage_is_writable(monkeypatch) -> None:
    monkeypatch.setattr(api_main, "check_storage_connection", lambda: (True, None))

    client = TestClient(api_main.app)
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["services"]["storage"]["ok"] is True


def test_health_returns_503_when_storage_fails(monkeypatch) -> None:
    monkeypatch.setattr(api_main, "check_storage_connection", lambda: (False, "read-only file system"))

    client = TestClient(api_main.app)
    response = client.get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["services"]["storage"]["error"] == "read-only file system"


def test_version_endpoint() -> None:
    client = TestClient(api_main.app)
    response = client.get("/version")

    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "headshot_studio"
    assert payload["version"]


def test_root_reports_service_is_running() -> None:
    client = TestClient(api_main.app)
    response = client.get("/")

    assert response.status_code == 200
    assert "running" in response.text
    assert response.headers["x-request-id"]
