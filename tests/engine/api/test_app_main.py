"""Unit tests for app.main — FastAPI app creation, routing, middleware, lifespan.

Tests verify the FastAPI instance configuration, router registration,
CORS middleware, the health endpoint, lifespan startup/shutdown, and the
engine factory helper.
"""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings, settings


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    """Import the actual app instance (no lifespan execution)."""
    from app.main import app as real_app
    return real_app


@pytest.fixture
def client(app):
    """TestClient that skips lifespan: no engine, no bridge thread."""
    return TestClient(app, raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# App creation tests
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestAppCreation:
    """FastAPI instance exists with correct settings."""

    def test_app_is_fastapi_instance(self, app):
        assert isinstance(app, FastAPI)

    def test_app_title(self, app):
        assert app.title == "IoT Security Lab"

    def test_app_version(self, app):
        assert app.version == "0.1.0"

    def test_app_has_lifespan(self, app):
        assert app.router.lifespan_context is not None


# ---------------------------------------------------------------------------
# Settings tests
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestSettings:
    """Defaults and environment overrides."""

    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.port == 5050
        assert s.simulation_device_count == 5
        assert s.simulation_tick_interval_ms == 500
        assert s.simulation_autostart is False

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SIMULATION_DEVICE_COUNT", "8")
        monkeypatch.setenv("SIMULATION_AUTOSTART", "true")
        s = Settings(_env_file=None)
        assert s.simulation_device_count == 8
        assert s.simulation_autostart is True


# ---------------------------------------------------------------------------
# Router registration tests
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestRouterRegistration:
    """All expected routes are mounted on the app."""

    EXPECTED_PATHS = [
        "/api/state",
        "/api/devices",
        "/api/devices/{device_id}",
        "/api/events",
        "/api/sim/start",
        "/api/sim/pause",
        "/api/sim/reset",
        "/api/attack/syn-flood",
        "/api/attack/dictionary",
        "/api/attack/mqtt-flood",
        "/api/attack/firmware-tamper",
        "/api/defense/rate-limiting",
        "/api/defense/account-lockout",
        "/api/defense/signature-check",
        "/api/scenarios",
        "/api/scenarios/{scenario_id}",
        "/ws/live",
        "/health",
    ]

    def test_expected_paths_exist(self, app):
        all_paths = {r.path for r in app.routes if hasattr(r, "path")}
        for path in self.EXPECTED_PATHS:
            assert path in all_paths, f"No route found for {path}"


# ---------------------------------------------------------------------------
# CORS middleware tests
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestCORSMiddleware:
    """CORS allows the dashboard dev server."""

    def test_cors_allows_dashboard_origin(self, client):
        origin = settings.cors_origins[0]
        resp = client.options(
            "/health",
            headers={"Origin": origin, "Access-Control-Request-Method": "GET"},
        )
        assert resp.headers.get("access-control-allow-origin") == origin
        assert resp.headers.get("access-control-allow-credentials") == "true"

    def test_cors_rejects_unknown_origin(self, client):
        resp = client.options(
            "/health",
            headers={"Origin": "http://evil.example.com", "Access-Control-Request-Method": "GET"},
        )
        assert resp.headers.get("access-control-allow-origin") is None


# ---------------------------------------------------------------------------
# Route endpoint tests
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestRouteEndpoints:

    def test_health_endpoint(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "app": "IoT Security Lab"}

    def test_api_without_lifespan_is_503(self, app):
        # Fresh app state: no lifespan has attached an engine
        with patch.object(app.state, "simulation_engine", None, create=True):
            resp = TestClient(app).get("/api/state")
        assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Lifespan tests
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestLifespan:
    """Startup wires engine, bus and bridge; shutdown stops them."""

    def test_startup_attaches_engine_and_bus(self, app):
        with TestClient(app) as client:
            engine = app.state.simulation_engine
            assert engine is not None
            assert app.state.event_bus.subscriber_count == 1
            resp = client.get("/api/state")
            assert resp.status_code == 200
            assert len(resp.json()["devices"]) == settings.simulation_device_count
            assert resp.json()["running"] is False

        assert engine.running is False
        assert app.state.event_bus.subscriber_count == 0

    def test_shutdown_stops_running_engine(self, app):
        with TestClient(app) as client:
            client.post("/api/sim/start")
            engine = app.state.simulation_engine
            assert engine.running is True
        assert engine.running is False

    def test_autostart(self, app):
        with patch.object(settings, "simulation_autostart", True):
            with TestClient(app):
                engine = app.state.simulation_engine
                assert engine.running is True
        assert engine.running is False

    def test_engine_events_reach_websocket(self, app):
        with TestClient(app) as client:
            with client.websocket_connect("/ws/live") as ws:
                assert ws.receive_json()["type"] == "connected"
                assert ws.receive_json()["type"] == "state"
                client.post("/api/defense/signature-check", json={"enabled": True})
                for _ in range(5):
                    msg = ws.receive_json()
                    if msg["type"] == "event":
                        break
                assert msg["type"] == "event"
                assert msg["data"]["message"] == "Signature verification enabled"


# ---------------------------------------------------------------------------
# Helper tests
# ---------------------------------------------------------------------------

@pytest.mark.unit
class TestHelpers:

    def test_create_simulation_engine_uses_settings(self):
        from app.main import _create_simulation_engine
        with patch.object(settings, "simulation_device_count", 3), \
                patch.object(settings, "simulation_tick_interval_ms", 250):
            engine = _create_simulation_engine()
        state = engine.get_state()
        assert len(state.devices) == 3
        assert state.tick_interval == 250
        assert state.running is False
