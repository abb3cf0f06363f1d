"""Integration tests for health check endpoints."""

from fastapi.testclient import TestClient


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_200(self, client: TestClient) -> None:
        """Test that /health endpoint returns 200 status."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_returns_healthy_status(self, client: TestClient) -> None:
        """Test that /health endpoint returns healthy status."""
        response = client.get("/health")
        data = response.json()

        assert data["status"] == "healthy"

    def test_health_returns_timestamp(self, client: TestClient) -> None:
        """Test that /health endpoint returns a timestamp."""
        response = client.get("/health")
        data = response.json()

        assert "timestamp" in data
        assert data["timestamp"] is not None

    def test_health_returns_version(self, client: TestClient) -> None:
        """Test that /health endpoint returns version info."""
        response = client.get("/health")
        data = response.json()

        assert data["version"] == "0.1.0"


class TestMetricsEndpoint:
    """Tests for /health/metrics endpoint."""

    def test_metrics_returns_200(self, client: TestClient) -> None:
        response = client.get("/health/metrics")
        assert response.status_code == 200

    def test_metrics_reports_mock_mode(self, client: TestClient) -> None:
        """Test that the metrics report whether the upstream is mocked."""
        data = client.get("/health/metrics").json()

        assert data["mock_mode"] is True
        assert "total_calls" in data["upstream"]

    def test_metrics_records_api_requests(self, client: TestClient) -> None:
        """Test that API requests show up in latency stats."""
        client.get("/api/v1/assistant/messages")

        data = client.get("/health/metrics").json()

        assert data["requests"]["total_requests"] >= 1
        assert "/api/v1/assistant/messages" in data["requests"]["by_path"]
        assert not any(path.startswith("/health") for path in data["requests"]["by_path"])
