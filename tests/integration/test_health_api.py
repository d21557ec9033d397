# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the application factory and health endpoint."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from counseltrack import __version__
from counseltrack.api import create_app


@pytest.fixture
def app():
    """Application built by the factory, without running its lifespan."""
    return create_app()


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


class TestCreateApp:
    """Tests for create_app."""

    def test_routes_registered(self, app):
        routes = [route.path for route in app.routes]

        assert "/health" in routes
        assert "/api/v1/interventions/start" in routes
        assert "/api/v1/escalations/check-unresponded" in routes
        assert "/api/v1/notifications/send" in routes

    def test_state(self, app):
        assert app.state.llm_client is None
        assert app.state.limiter is not None


class TestHealthEndpoint:
    """Tests for GET /health."""

    @patch("counseltrack.api.routes.health.check_database_connection", new_callable=AsyncMock)
    def test_healthy(self, mock_check, client):
        mock_check.return_value = True

        response = client.get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["version"] == __version__
        assert body["database"]["status"] == "healthy"
        assert body["llm_available"] is False

    @patch("counseltrack.api.routes.health.check_database_connection", new_callable=AsyncMock)
    def test_degraded_without_database(self, mock_check, client):
        mock_check.return_value = False

        response = client.get("/health")

        assert response.json()["status"] == "degraded"
        assert response.json()["database"] == {"status": "unhealthy", "latency_ms": None}

    @patch("counseltrack.api.routes.health.check_database_connection", new_callable=AsyncMock)
    def test_llm_availability(self, mock_check, app, client):
        mock_check.return_value = True
        app.state.llm_client = MagicMock()
        app.state.llm_client.is_available.return_value = True

        response = client.get("/health")

        assert response.json()["llm_available"] is True


class TestRequestContext:
    """Tests for the request-id middleware."""

    @patch("counseltrack.api.routes.health.check_database_connection", new_callable=AsyncMock)
    def test_request_id_is_echoed(self, mock_check, client):
        mock_check.return_value = True

        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    @patch("counseltrack.api.routes.health.check_database_connection", new_callable=AsyncMock)
    def test_request_id_is_generated(self, mock_check, client):
        mock_check.return_value = True

        response = client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 36
