"""Tests for Prometheus metrics endpoint."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from share_gateway.main import build_app
from share_gateway.middleware.metrics import normalize_path
from tests.immich_fake import SHARE_KEY, FakeImmich, make_id


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    """Test that /metrics returns Prometheus format."""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]

    content = response.text
    assert "http_requests_total" in content
    assert "http_request_duration_seconds" in content
    assert "share_gateway_info" in content


def test_metrics_contains_business_metrics(client: TestClient) -> None:
    """Test that /metrics contains share access metrics."""
    client.post("/share/unlock", json={"key": SHARE_KEY, "password": "x"})
    client.get(f"/share/photo/{SHARE_KEY}/{make_id(1)}/thumbnail")

    content = client.get("/metrics").text
    assert "share_resolutions_total" in content
    assert "share_unlocks_total" in content
    assert "credential_recoveries_total" in content
    assert 'asset_streams_total{media_type="IMAGE",size="thumbnail"}' in content


def test_metrics_contains_backend_health(client: TestClient, fake_immich: FakeImmich) -> None:
    """Test that /metrics probes the backend before exporting."""
    assert "backend_up 1.0" in client.get("/metrics").text

    fake_immich.ping_ok = False
    assert "backend_up 0.0" in client.get("/metrics").text


def test_http_metrics_use_normalized_paths(client: TestClient) -> None:
    """Test that share keys and asset ids never appear as label values."""
    client.get(f"/share/photo/{SHARE_KEY}/{make_id(1)}")
    client.get(f"/share/{SHARE_KEY}/api")

    content = client.get("/metrics").text
    assert 'endpoint="/share/photo/{key}/{id}"' in content
    assert 'endpoint="/share/{key}/api"' in content
    assert SHARE_KEY not in content
    assert make_id(1) not in content


def test_metrics_excluded_from_own_metrics(client: TestClient) -> None:
    """Test that /metrics endpoint itself is excluded from HTTP metrics."""
    for _ in range(3):
        client.get("/metrics")

    content = client.get("/metrics").text
    lines = [
        line
        for line in content.split("\n")
        if 'endpoint="/metrics"' in line and line.startswith("http_requests_total")
    ]
    assert lines == []


def test_metrics_can_be_disabled(fake_immich: FakeImmich, override_settings) -> None:
    """Test that /metrics falls through to the invalid response when disabled."""
    override_settings(METRICS_ENABLED="false")
    app = build_app(transport=httpx.MockTransport(fake_immich.handler))
    with TestClient(app) as client:
        assert client.get("/metrics").status_code == 404


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/", "/"),
        ("/healthcheck", "/healthcheck"),
        ("/share/healthcheck", "/share/healthcheck"),
        ("/share/unlock", "/share/unlock"),
        ("/share/abc-123", "/share/{key}"),
        ("/share/abc-123/api", "/share/{key}/api"),
        ("/share/abc-123/download", "/share/{key}/download"),
        (f"/share/photo/abc/{make_id(7)}/preview", "/share/photo/{key}/{id}/preview"),
        (f"/share/video/abc/{make_id(7)}", "/share/video/{key}/{id}"),
        ("/wp-login.php", "/{other}"),
        ("/etc/passwd", "/{other}"),
    ],
)
def test_normalize_path(path: str, expected: str) -> None:
    assert normalize_path(path) == expected
