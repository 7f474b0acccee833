from unittest.mock import patch

from school_attendance import main
from school_attendance.config import settings


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_exposes_request_counters(client):
    client.get("/health")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert 'endpoint="/health"' in response.text


def test_unknown_route_is_404(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "message": "Not Found"}


def test_wrong_method_is_405(client):
    response = client.post("/health")
    assert response.status_code == 405
    assert response.json() == {"error": "method_not_allowed", "message": "Method Not Allowed"}
    assert "GET" in response.headers["allow"]


def test_run_starts_uvicorn():
    with patch("uvicorn.run") as run:
        main.run()
    run.assert_called_once_with("school_attendance.main:app", host=settings.HOST, port=settings.PORT)
