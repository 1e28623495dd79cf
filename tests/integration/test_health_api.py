"""
Integration tests for the unversioned health check routes
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))


@pytest.mark.integration
class TestHealthChecks:

    def test_health_reports_services(self, client, monkeypatch):
        monkeypatch.setattr("app.main.check_redis_connection", lambda timeout=2: False)

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["services"]["redis"] == "unavailable"
        assert body["services"]["database"] in ("ok", "unavailable")

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/health"
