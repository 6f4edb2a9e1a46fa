"""Simulation state aggregates — attack knobs, defense toggles, root state.

AttackState and DefenseState are merged from partial updates: only the
fields present in the update change.  Field names may be given in
snake_case (``syn_flood``) or in the camelCase the dashboard speaks
(``synFlood``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from .device import Device, create_devices, now_ms

DEFAULT_TICK_INTERVAL_MS = 500
DEFAULT_DEVICE_COUNT = 5

_CAMEL_ALIASES: dict[str, str] = {
    "synFlood": "syn_flood",
    "dictionaryAttack": "dictionary_attack",
    "mqttFlood": "mqtt_flood",
    "firmwareTamper": "firmware_tamper",
    "rateLimiting": "rate_limiting",
    "accountLockout": "account_lockout",
    "signatureCheck": "signature_check",
}


def normalize_partial(cls, partial: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase keys to field names, drop ``None`` values.

    Raises ValueError for keys that are not fields of *cls*.
    """
    names = {f.name for f in fields(cls)}
    out: dict[str, Any] = {}
    for key, value in partial.items():
        name = _CAMEL_ALIASES.get(key, key)
        if name not in names:
            raise ValueError(f"Unknown {cls.__name__} field: {key!r}")
        if value is not None:
            out[name] = value
    return out


@dataclass
class AttackState:
    syn_flood: float = 0  # 0-100
    dictionary_attack: float = 0  # 0-100
    mqtt_flood: float = 0  # 0-100
    firmware_tamper: bool = False

    def merge(self, partial: dict[str, Any]) -> dict[str, Any]:
        """Apply *partial* in place.  Returns the normalized update."""
        update = normalize_partial(AttackState, partial)
        for name, value in update.items():
            setattr(self, name, value)
        return update

    def to_dict(self) -> dict[str, Any]:
        return {
            "synFlood": self.syn_flood,
            "dictionaryAttack": self.dictionary_attack,
            "mqttFlood": self.mqtt_flood,
            "firmwareTamper": self.firmware_tamper,
        }


@dataclass
class DefenseState:
    rate_limiting: bool = False
    account_lockout: bool = False
    signature_check: bool = False

    def merge(self, partial: dict[str, Any]) -> dict[str, Any]:
        """Apply *partial* in place.  Returns the normalized update."""
        update = normalize_partial(DefenseState, partial)
        for name, value in update.items():
            setattr(self, name, value)
        return update

    def to_dict(self) -> dict[str, Any]:
        return {
            "rateLimiting": self.rate_limiting,
            "accountLockout": self.account_lockout,
            "signatureCheck": self.signature_check,
        }


@dataclass
class SimulationState:
    """Root aggregate.  One instance per engine, replaced wholesale on reset."""

    devices: list[Device]
    running: bool = False
    tick_interval: int = DEFAULT_TICK_INTERVAL_MS  # ms
    attack: AttackState = field(default_factory=AttackState)
    defense: DefenseState = field(default_factory=DefenseState)
    last_updated: int = field(default_factory=now_ms)
    started_at: int = field(default_factory=now_ms)

    def get_device(self, device_id: str) -> Device | None:
        for device in self.devices:
            if device.device_id == device_id:
                return device
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "tickInterval": self.tick_interval,
            "devices": [d.to_dict() for d in self.devices],
            "attack": self.attack.to_dict(),
            "defense": self.defense.to_dict(),
            "lastUpdated": self.last_updated,
            "startedAt": self.started_at,
        }


def create_initial_state(
    rng,
    device_count: int = DEFAULT_DEVICE_COUNT,
    tick_interval: int = DEFAULT_TICK_INTERVAL_MS,
) -> SimulationState:
    """Fresh state: new device batch, zeroed attack and defense."""
    now = now_ms()
    return SimulationState(
        devices=create_devices(device_count, rng),
        tick_interval=tick_interval,
        last_updated=now,
        started_at=now,
    )
