"""Simulation control API — state reads, start/pause/reset, attack and defense knobs."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from app.models import AttackUpdate, DefenseUpdate, IntensityUpdate, ToggleUpdate
from engine.simulation import list_scenarios

router = APIRouter(prefix="/api", tags=["simulation"])


def _get_engine(request: Request):
    """Retrieve the SimulationEngine from app state."""
    engine = getattr(request.app.state, "simulation_engine", None)
    if engine is None:
        raise HTTPException(503, "Simulation engine not available")
    return engine


def _command_result(engine, status: str) -> dict:
    return {"status": status, "state": engine.get_state().to_dict()}


# -- Reads ------------------------------------------------------------------

@router.get("/state")
async def get_state(request: Request):
    """Full simulation snapshot."""
    return _get_engine(request).get_state().to_dict()


@router.get("/devices")
async def list_devices(request: Request):
    state = _get_engine(request).get_state()
    return {"devices": [d.to_dict() for d in state.devices]}


@router.get("/devices/{device_id}")
async def get_device(device_id: str, request: Request):
    device = _get_engine(request).get_device(device_id)
    if device is None:
        raise HTTPException(404, "Device not found")
    return device.to_dict()


@router.get("/events")
async def get_events(request: Request, limit: int = Query(50, ge=1, le=200)):
    """Recent events for late-joining clients, oldest first."""
    events = _get_engine(request).get_recent_events(limit)
    return {"events": [e.to_dict() for e in events]}


# -- Lifecycle --------------------------------------------------------------

@router.post("/sim/start")
async def start_simulation(request: Request):
    engine = _get_engine(request)
    engine.start()
    return _command_result(engine, "started")


@router.post("/sim/pause")
async def pause_simulation(request: Request):
    engine = _get_engine(request)
    engine.pause()
    return _command_result(engine, "paused")


@router.post("/sim/reset")
async def reset_simulation(request: Request):
    engine = _get_engine(request)
    engine.reset()
    return _command_result(engine, "reset")


# -- Attacks ----------------------------------------------------------------

def _set_intensity(request: Request, field: str, body: IntensityUpdate) -> dict:
    _get_engine(request).set_attack_state({field: body.intensity})
    return {"status": "updated", "attack": field, "intensity": body.intensity}


@router.post("/attack/syn-flood")
async def set_syn_flood(body: IntensityUpdate, request: Request):
    return _set_intensity(request, "synFlood", body)


@router.post("/attack/dictionary")
async def set_dictionary_attack(body: IntensityUpdate, request: Request):
    return _set_intensity(request, "dictionaryAttack", body)


@router.post("/attack/mqtt-flood")
async def set_mqtt_flood(body: IntensityUpdate, request: Request):
    return _set_intensity(request, "mqttFlood", body)


@router.post("/attack/firmware-tamper")
async def set_firmware_tamper(body: ToggleUpdate, request: Request):
    _get_engine(request).set_attack_state(firmware_tamper=body.enabled)
    return {"status": "updated", "attack": "firmwareTamper", "enabled": body.enabled}


@router.post("/sim/attacks")
async def set_attacks(body: AttackUpdate, request: Request):
    """Partial attack update, e.g. ``{"synFlood": 80, "firmwareTamper": true}``."""
    engine = _get_engine(request)
    engine.set_attack_state(body.to_partial())
    return {"status": "updated", "attack": engine.get_state().attack.to_dict()}


# -- Defenses ---------------------------------------------------------------

def _set_toggle(request: Request, field: str, body: ToggleUpdate) -> dict:
    _get_engine(request).set_defense_state({field: body.enabled})
    return {"status": "updated", "defense": field, "enabled": body.enabled}


@router.post("/defense/rate-limiting")
async def set_rate_limiting(body: ToggleUpdate, request: Request):
    return _set_toggle(request, "rateLimiting", body)


@router.post("/defense/account-lockout")
async def set_account_lockout(body: ToggleUpdate, request: Request):
    return _set_toggle(request, "accountLockout", body)


@router.post("/defense/signature-check")
async def set_signature_check(body: ToggleUpdate, request: Request):
    return _set_toggle(request, "signatureCheck", body)


@router.post("/sim/defenses")
async def set_defenses(body: DefenseUpdate, request: Request):
    engine = _get_engine(request)
    engine.set_defense_state(body.to_partial())
    return {"status": "updated", "defense": engine.get_state().defense.to_dict()}


# -- Scenarios --------------------------------------------------------------

@router.get("/scenarios")
async def get_scenarios():
    return {"scenarios": [s.to_dict() for s in list_scenarios()]}


@router.post("/scenarios/{scenario_id}")
async def apply_scenario(scenario_id: str, request: Request):
    engine = _get_engine(request)
    try:
        state = engine.apply_scenario(scenario_id)
    except KeyError:
        raise HTTPException(404, f"Unknown scenario: {scenario_id}")
    return {"status": "applied", "scenario": scenario_id, "state": state.to_dict()}
