"""Scenario presets — named attack/defense configurations.

A scenario is a complete AttackState + DefenseState pair plus a flag that
says whether applying it also starts the simulation.  Presets are the
lab exercises offered by the dashboard's scenario picker.

Usage:
    engine.apply_scenario("dos-attack")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .state import AttackState, DefenseState


@dataclass
class Scenario:
    """One preset lab configuration."""

    scenario_id: str
    name: str
    description: str
    attack: AttackState = field(default_factory=AttackState)
    defense: DefenseState = field(default_factory=DefenseState)
    start: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.scenario_id,
            "name": self.name,
            "description": self.description,
            "attack": self.attack.to_dict(),
            "defense": self.defense.to_dict(),
            "start": self.start,
        }


_SCENARIOS: tuple[Scenario, ...] = (
    Scenario(
        scenario_id="quiet-lab",
        name="Quiet Lab",
        description="No active attacks, all devices operating normally",
        defense=DefenseState(rate_limiting=True, account_lockout=True, signature_check=True),
    ),
    Scenario(
        scenario_id="dos-attack",
        name="Denial of Service",
        description="SYN flood attack on vulnerable devices",
        attack=AttackState(syn_flood=80),
        defense=DefenseState(signature_check=True),
    ),
    Scenario(
        scenario_id="credential-stuffing",
        name="Credential Stuffing",
        description="Dictionary attack on devices with weak credentials",
        attack=AttackState(dictionary_attack=70),
        defense=DefenseState(signature_check=True),
    ),
    Scenario(
        scenario_id="mqtt-exploit",
        name="MQTT Exploit",
        description="Flooding MQTT broker with messages",
        attack=AttackState(mqtt_flood=85),
        defense=DefenseState(account_lockout=True, signature_check=True),
    ),
    Scenario(
        scenario_id="firmware-tampering",
        name="Firmware Tampering",
        description="Unauthorized firmware modification",
        attack=AttackState(firmware_tamper=True),
        defense=DefenseState(rate_limiting=True, account_lockout=True),
    ),
    Scenario(
        scenario_id="full-defense",
        name="Full Defense",
        description="All security measures enabled",
        defense=DefenseState(rate_limiting=True, account_lockout=True, signature_check=True),
    ),
)


def list_scenarios() -> list[Scenario]:
    return list(_SCENARIOS)


def get_scenario(scenario_id: str) -> Scenario | None:
    for scenario in _SCENARIOS:
        if scenario.scenario_id == scenario_id:
            return scenario
    return None
