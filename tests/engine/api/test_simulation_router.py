"""Unit tests for the simulation API router (/api/*).

Uses FastAPI TestClient against a minimal app carrying a real
SimulationEngine driven by a stubbed random source; no server, no loops
left running.
"""
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.routers.simulation import router


def _make_app(engine=None):
    """Create a minimal FastAPI app with the simulation router and optional engine."""
    app = FastAPI()
    app.include_router(router)
    app.state.simulation_engine = engine
    return app


@pytest.fixture
def client(quiet_engine):
    return TestClient(_make_app(engine=quiet_engine))


@pytest.mark.unit
class TestReads:
    """GET /api/state, /api/devices, /api/events"""

    def test_state(self, client):
        resp = client.get("/api/state")
        assert resp.status_code == 200
        data = resp.json()
        assert data["running"] is False
        assert data["tickInterval"] == 500
        assert len(data["devices"]) == 5
        assert data["attack"]["synFlood"] == 0
        assert data["defense"]["rateLimiting"] is False

    def test_devices(self, client):
        devices = client.get("/api/devices").json()["devices"]
        assert [d["id"] for d in devices] == [f"device-{i}" for i in range(1, 6)]
        assert devices[0]["type"] == "cctv"
        assert devices[0]["metrics"]["netOut"] == 500.0

    def test_single_device(self, client):
        resp = client.get("/api/devices/device-3")
        assert resp.status_code == 200
        data = resp.json()
        assert data["type"] == "thermostat"
        assert data["metrics"]["battery"] == 100.0

    def test_unknown_device_404(self, client):
        resp = client.get("/api/devices/device-42")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Device not found"

    def test_events(self, client):
        client.post("/api/defense/signature-check", json={"enabled": True})
        client.post("/api/defense/signature-check", json={"enabled": False})
        events = client.get("/api/events", params={"limit": 1}).json()["events"]
        assert len(events) == 1
        assert events[0]["message"] == "Signature verification disabled"

    def test_events_limit_validated(self, client):
        assert client.get("/api/events", params={"limit": 0}).status_code == 422
        assert client.get("/api/events", params={"limit": 500}).status_code == 422


@pytest.mark.unit
class TestLifecycle:
    """POST /api/sim/start, /api/sim/pause, /api/sim/reset"""

    def test_start_and_pause(self, client):
        resp = client.post("/api/sim/start")
        assert resp.status_code == 200
        assert resp.json()["status"] == "started"
        assert resp.json()["state"]["running"] is True

        resp = client.post("/api/sim/pause")
        assert resp.json()["status"] == "paused"
        assert resp.json()["state"]["running"] is False

    def test_reset(self, client):
        client.post("/api/attack/syn-flood", json={"intensity": 60})
        resp = client.post("/api/sim/reset")
        assert resp.status_code == 200
        assert resp.json()["status"] == "reset"
        assert resp.json()["state"]["attack"]["synFlood"] == 0


@pytest.mark.unit
class TestAttacks:
    """POST /api/attack/* and /api/sim/attacks"""

    @pytest.mark.parametrize("path,field", [
        ("/api/attack/syn-flood", "synFlood"),
        ("/api/attack/dictionary", "dictionaryAttack"),
        ("/api/attack/mqtt-flood", "mqttFlood"),
    ])
    def test_set_intensity(self, client, quiet_engine, path, field):
        resp = client.post(path, json={"intensity": 45})
        assert resp.status_code == 200
        assert resp.json() == {"status": "updated", "attack": field, "intensity": 45}
        assert quiet_engine.get_state().attack.to_dict()[field] == 45

    @pytest.mark.parametrize("body", [
        {"intensity": 101},
        {"intensity": -1},
        {"intensity": "80"},
        {"intensity": True},
        {},
    ])
    def test_invalid_intensity_422(self, client, quiet_engine, body):
        resp = client.post("/api/attack/syn-flood", json=body)
        assert resp.status_code == 422
        assert quiet_engine.get_state().attack.syn_flood == 0

    def test_firmware_tamper(self, client, quiet_engine):
        resp = client.post("/api/attack/firmware-tamper", json={"enabled": True})
        assert resp.status_code == 200
        assert resp.json()["enabled"] is True
        assert all(d.integrity_risk for d in quiet_engine.get_state().devices)

    def test_partial_attack_update(self, client):
        client.post("/api/sim/attacks", json={"synFlood": 30})
        resp = client.post("/api/sim/attacks", json={"mqttFlood": 70})
        assert resp.status_code == 200
        attack = resp.json()["attack"]
        assert attack["synFlood"] == 30
        assert attack["mqttFlood"] == 70

    @pytest.mark.parametrize("body", [
        {},
        {"synFlood": 200},
        {"firmwareTamper": "yes"},
        {"pingOfDeath": 10},
    ])
    def test_invalid_attack_update_422(self, client, body):
        assert client.post("/api/sim/attacks", json=body).status_code == 422


@pytest.mark.unit
class TestDefenses:
    """POST /api/defense/* and /api/sim/defenses"""

    @pytest.mark.parametrize("path,field,attr", [
        ("/api/defense/rate-limiting", "rateLimiting", "rate_limiting"),
        ("/api/defense/account-lockout", "accountLockout", "account_lockout"),
        ("/api/defense/signature-check", "signatureCheck", "signature_check"),
    ])
    def test_toggle(self, client, quiet_engine, path, field, attr):
        resp = client.post(path, json={"enabled": True})
        assert resp.status_code == 200
        assert resp.json() == {"status": "updated", "defense": field, "enabled": True}
        assert getattr(quiet_engine.get_state().defense, attr) is True

    @pytest.mark.parametrize("body", [{"enabled": "true"}, {"enabled": 1}, {}])
    def test_toggle_requires_boolean(self, client, body):
        assert client.post("/api/defense/rate-limiting", json=body).status_code == 422

    def test_partial_defense_update(self, client):
        resp = client.post("/api/sim/defenses", json={"accountLockout": True})
        assert resp.status_code == 200
        assert resp.json()["defense"] == {
            "rateLimiting": False, "accountLockout": True, "signatureCheck": False,
        }


@pytest.mark.unit
class TestScenarios:
    """GET /api/scenarios, POST /api/scenarios/{id}"""

    def test_list(self, client):
        scenarios = client.get("/api/scenarios").json()["scenarios"]
        assert len(scenarios) == 6
        assert scenarios[0]["id"] == "quiet-lab"

    def test_apply(self, client):
        resp = client.post("/api/scenarios/credential-stuffing")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "applied"
        assert data["scenario"] == "credential-stuffing"
        assert data["state"]["running"] is True
        assert data["state"]["attack"]["dictionaryAttack"] == 70

    def test_unknown_404(self, client):
        resp = client.post("/api/scenarios/zero-day")
        assert resp.status_code == 404


@pytest.mark.unit
class TestNoEngine:
    """Every engine-backed route answers 503 when no engine is attached."""

    @pytest.mark.parametrize("method,path,body", [
        ("get", "/api/state", None),
        ("get", "/api/devices", None),
        ("get", "/api/events", None),
        ("post", "/api/sim/start", None),
        ("post", "/api/attack/syn-flood", {"intensity": 10}),
        ("post", "/api/defense/rate-limiting", {"enabled": True}),
        ("post", "/api/scenarios/dos-attack", None),
    ])
    def test_503(self, method, path, body):
        client = TestClient(_make_app(engine=None))
        kwargs = {"json": body} if body is not None else {}
        resp = getattr(client, method)(path, **kwargs)
        assert resp.status_code == 503

    def test_scenario_list_needs_no_engine(self):
        client = TestClient(_make_app(engine=None))
        assert client.get("/api/scenarios").status_code == 200
