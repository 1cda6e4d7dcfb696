"""Tests for request middleware."""

from starlette.requests import Request

from app.middleware.logging import mask_sensitive_data
from app.middleware.performance import PerformanceMetrics, metrics
from app.middleware.rate_limit import get_user_for_rate_limit


def _request(headers):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/get-recipes",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.7", 5000),
    }
    return Request(scope)


def test_mask_sensitive_data():
    data = {"api_key": "abc", "nested": {"Authorization": "Bearer x"}, "image": "d" * 500, "n": 3}

    masked = mask_sensitive_data(data)

    assert masked["api_key"] == "***"
    assert masked["nested"]["Authorization"] == "***"
    assert masked["image"].endswith("...(500 chars)")
    assert masked["n"] == 3


def test_rate_limit_key_prefers_user_id():
    assert get_user_for_rate_limit(_request({"X-User-Id": "user-1"})) == "user-1"
    assert get_user_for_rate_limit(_request({})) == "10.0.0.7"
    assert get_user_for_rate_limit(_request({"X-User-Id": "user-2"}).scope) == "user-2"


def test_performance_metrics_summary():
    perf = PerformanceMetrics(slow_threshold=1.0, very_slow_threshold=3.0)
    perf.record_request("/health", 0.1)
    perf.record_request("/api/tts", 2.0)
    perf.record_request("/api/tts", 4.0, is_error=True)

    summary = perf.get_summary()

    assert summary["total_requests"] == 3
    assert summary["slow_requests"] == 1
    assert summary["very_slow_requests"] == 1
    assert summary["errors"] == 1
    assert summary["requests_by_path"] == {"/health": 1, "/api/tts": 2}


def test_response_headers(client, user_headers):
    response = client.get("/api/get-recipes", headers={**user_headers, "X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Response-Time"].endswith("ms")


def test_metrics_endpoint_counts_requests(client):
    metrics.reset()
    client.get("/health")

    data = client.get("/health/metrics").json()

    assert data["status"] == "ok"
    assert data["requests_by_path"]["/health"] == 1


def test_metrics_endpoint_reports_live_wizard_sessions(client, user_headers, session_store):
    client.post("/api/wizard/sessions", headers=user_headers)

    data = client.get("/health/metrics").json()

    assert data["live_wizard_sessions"] == 1
    assert data["uptime_seconds"] >= 0
