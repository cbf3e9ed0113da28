from __future__ import annotations

from fastapi.testclient import TestClient

from core.metrics import RequestMetrics, request_metrics


def test_metrics_endpoint_counts_requests_by_route_template(client_for, world):
    from app.main import create_app

    request_metrics.reset()
    client = TestClient(create_app())
    client.get("/api/healthz")
    client.get("/api/healthz")
    client.get("/api/no-such-thing")
    owner = client_for(world.owner_a)
    owner.get(f"/api/notices/{'x' * 8}")

    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers.get("content-type", "").startswith("text/plain; version=0.0.4")
    text = resp.text
    assert "# TYPE shopdesk_requests_total counter" in text
    assert 'shopdesk_requests_total{route="/api/healthz",method="GET",status="200"} 2' in text
    assert 'shopdesk_requests_total{route="unmatched",method="GET",status="404"} 1' in text
    # path parameters collapse into the template
    assert 'route="/api/notices/{notice_id}"' in text
    assert "xxxxxxxx" not in text
    assert 'shopdesk_request_duration_seconds_count{route="/api/healthz",method="GET"} 2' in text


def test_histogram_buckets_are_cumulative():
    m = RequestMetrics()
    m.observe("/r", "get", 200, 0.003)
    m.observe("/r", "GET", 500, 0.2)
    m.observe("/r", "GET", 200, 30.0)
    text = m.export()
    assert 'shopdesk_requests_total{route="/r",method="GET",status="200"} 2' in text
    assert 'shopdesk_requests_total{route="/r",method="GET",status="500"} 1' in text
    assert 'shopdesk_request_duration_seconds_bucket{route="/r",method="GET",le="0.005"} 1' in text
    assert 'shopdesk_request_duration_seconds_bucket{route="/r",method="GET",le="0.25"} 2' in text
    assert 'shopdesk_request_duration_seconds_bucket{route="/r",method="GET",le="+Inf"} 3' in text
    assert 'shopdesk_request_duration_seconds_count{route="/r",method="GET"} 3' in text


def test_labels_are_escaped():
    m = RequestMetrics()
    m.observe('/a"b', "GET", 200, 0.01)
    assert 'route="/a\\"b"' in m.export()
