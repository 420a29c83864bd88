"""Tests for health check and root endpoints."""

from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from clearance.api.routers.health import check_redis


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_basic_health_check(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "timestamp" in data

    def test_liveness_probe(self, client: TestClient):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readiness_probe(self, client: TestClient):
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["redis"]["status"] == "skipped"

    def test_health_detailed(self, client: TestClient):
        """Disk or memory pressure on the test host may turn this into a 503."""
        response = client.get("/health/detailed")
        assert response.status_code in [200, 503]
        data = response.json()
        assert "database" in data["checks"]
        assert data["catalog"] == {"stages": 3, "ids": ["A", "B", "C"]}
        assert data["notification_backend"] == "none"

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["stages"] == 3

    def test_unknown_route_uses_error_envelope(self, client: TestClient):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json()["code"] == "http_404"


class TestRedisCheck:
    """Test the redis probe."""

    def test_skipped_without_celery(self, test_settings):
        assert check_redis(test_settings)["status"] == "skipped"

    def test_celery_backend_pings_redis(self, test_settings):
        settings = test_settings.model_copy(update={"notification_backend": "celery"})
        fake = MagicMock()
        fake.info.return_value = {"redis_version": "7.2.0"}
        with patch("clearance.api.routers.health.redis.from_url", return_value=fake):
            result = check_redis(settings)
        assert result == {"status": "healthy", "version": "7.2.0"}
        fake.ping.assert_called_once()

    def test_unreachable_redis(self, test_settings):
        settings = test_settings.model_copy(update={"notification_backend": "celery"})
        with patch("clearance.api.routers.health.redis.from_url", side_effect=ConnectionError("refused")):
            assert check_redis(settings)["status"] == "unhealthy"
