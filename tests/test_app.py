"""
Tests for the app shell: health endpoints, request ids, CORS, error envelope
and the optional terminal frontend.
"""

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_get_health_endpoint():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_get_healthz_endpoint():
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_head_root_endpoint():
    response = client.head("/")
    assert response.status_code == 200


def test_request_id_is_echoed():
    response = client.get("/health", headers={"X-Request-Id": "abc123"})
    assert response.headers["x-request-id"] == "abc123"


def test_request_id_is_generated():
    response = client.get("/health")
    assert len(response.headers["x-request-id"]) == 32


def test_unknown_route_uses_error_envelope():
    response = client.get("/api/rss/spiegel/unknown")
    assert response.status_code == 404
    assert "error" in response.json()


def test_cors_preflight_for_rss_endpoint():
    response = client.options(
        "/api/rss/spiegel/top5",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert "access-control-allow-origin" in response.headers
    assert "GET" in response.headers["access-control-allow-methods"]


def test_terminal_page_missing_is_404_when_no_frontend(monkeypatch, tmp_path):
    from app import main as main_module

    monkeypatch.setattr(main_module, "TERMINAL_PAGE", tmp_path / "terminal.html")

    response = client.get("/terminal")
    assert response.status_code == 404
    assert response.json() == {"error": "terminal.html not found"}


def test_terminal_page_is_served(monkeypatch, tmp_path):
    from app import main as main_module

    page = tmp_path / "terminal.html"
    page.write_text("<html><body>terminal</body></html>", encoding="utf-8")
    monkeypatch.setattr(main_module, "TERMINAL_PAGE", page)

    response = client.get("/")
    assert response.status_code == 200
    assert "terminal" in response.text
