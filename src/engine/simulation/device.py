"""Device — a simulated IoT endpoint and its metric synthesis rules.

Architecture
------------
Device is a *flat dataclass*, the same way the engine models every other
simulated entity.  All five categories (cctv, smart_bulb, thermostat,
door_lock, ip_camera) share the same fields; category-specific behaviour
lives in lookup tables (_BASELINES, _DEFAULT_PORTS) rather than in a
class hierarchy.

The engine is the only writer.  Everything outside the engine sees deep
copies produced by ``SimulationEngine.get_state()``.

Metric synthesis:
  baseline * attack_multiplier * tamper_multiplier, then +/-20% jitter per
  value, then CPU and memory clamped to [0, 100].  The failed-auth counter
  is copied from the baseline unchanged.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from .events import SimulationEvent
from .risk import calculate_risk

DEVICE_TYPES: tuple[str, ...] = ("cctv", "smart_bulb", "thermostat", "door_lock", "ip_camera")

# Categories that run on batteries.  Battery only drains, nothing recharges.
BATTERY_TYPES: frozenset[str] = frozenset({"thermostat", "door_lock"})

METRIC_VARIANCE = 0.2
WEAK_PASSWORD_PROBABILITY = 0.3
DEFAULT_FIRMWARE = "1.0.0"

# Per-category baselines: (cpu, mem, net_in, net_out, msg_rate, failed_auth)
_BASELINES: dict[str, tuple[float, float, float, float, float, float]] = {
    "cctv":       (15.0, 30.0, 200.0, 500.0, 10.0, 0.0),
    "smart_bulb": (5.0,  10.0, 10.0,  5.0,   2.0,  0.0),
    "thermostat": (10.0, 15.0, 5.0,   5.0,   1.0,  0.0),
    "door_lock":  (8.0,  12.0, 3.0,   3.0,   0.5,  0.0),
    "ip_camera":  (20.0, 40.0, 300.0, 800.0, 15.0, 0.0),
}

# Web ports plus a category-specific service port.
_DEFAULT_PORTS: dict[str, tuple[int, ...]] = {
    "cctv":       (80, 443, 554, 8000),
    "smart_bulb": (80, 443, 8080),
    "thermostat": (80, 443, 3000),
    "door_lock":  (80, 443, 3001),
    "ip_camera":  (80, 443, 554, 8000, 9000),
}


def now_ms() -> int:
    """Wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


@dataclass
class DeviceMetrics:
    """One metrics snapshot for a device."""

    cpu: float
    mem: float
    net_in: float
    net_out: float
    msg_rate: float | None = None
    battery: float | None = None  # 0-100, only for BATTERY_TYPES
    failed_auth: float = 0.0
    timestamp: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "cpu": self.cpu,
            "mem": self.mem,
            "netIn": self.net_in,
            "netOut": self.net_out,
            "failedAuth": self.failed_auth,
            "timestamp": self.timestamp,
        }
        if self.msg_rate is not None:
            data["msgRate"] = self.msg_rate
        if self.battery is not None:
            data["battery"] = self.battery
        return data


@dataclass
class Device:
    """A single simulated IoT device.

    Lifecycle:
      created in a batch -> mutated every tick -> replaced on reset
      compromised: False -> True (one way until reset)
      integrity_risk: toggled by firmware tamper / signature check
    """

    device_id: str
    name: str
    device_type: str  # one of DEVICE_TYPES
    metrics: DeviceMetrics
    firmware_version: str = DEFAULT_FIRMWARE
    weak_password: bool = False
    open_ports: list[int] = field(default_factory=list)
    compromised: bool = False
    integrity_risk: bool = False
    risk_score: float = 0.0
    last_event: SimulationEvent | None = None
    last_updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the camelCase shape the dashboard consumes."""
        return {
            "id": self.device_id,
            "name": self.name,
            "type": self.device_type,
            "firmwareVersion": self.firmware_version,
            "weakPassword": self.weak_password,
            "openPorts": list(self.open_ports),
            "compromised": self.compromised,
            "integrityRisk": self.integrity_risk,
            "riskScore": self.risk_score,
            "lastEvent": self.last_event.to_dict() if self.last_event else None,
            "metrics": self.metrics.to_dict(),
            "lastUpdated": self.last_updated,
        }


def _check_type(device_type: str) -> None:
    if device_type not in _BASELINES:
        raise ValueError(f"Unknown device type: {device_type!r}")


def baseline_metrics(device_type: str) -> DeviceMetrics:
    """Return the fixed baseline metrics for *device_type*."""
    _check_type(device_type)
    cpu, mem, net_in, net_out, msg_rate, failed_auth = _BASELINES[device_type]
    return DeviceMetrics(
        cpu=cpu, mem=mem, net_in=net_in, net_out=net_out,
        msg_rate=msg_rate, failed_auth=failed_auth,
    )


def default_open_ports(device_type: str) -> list[int]:
    """Return a fresh copy of the default port list for *device_type*."""
    _check_type(device_type)
    return list(_DEFAULT_PORTS[device_type])


def _jitter(value: float, rng) -> float:
    return value * (1 + (rng.random() * 2 - 1) * METRIC_VARIANCE)


def synthesize_metrics(
    baseline: DeviceMetrics,
    attack_multiplier: float,
    tamper_multiplier: float,
    rng,
) -> DeviceMetrics:
    """Build a fresh snapshot from *baseline*, scaled and jittered.

    Only the random jitter varies between calls with equal inputs.
    """
    factor = attack_multiplier * tamper_multiplier
    msg_rate = None
    if baseline.msg_rate is not None:
        msg_rate = _jitter(baseline.msg_rate * factor, rng)
    return DeviceMetrics(
        cpu=min(100.0, max(0.0, _jitter(baseline.cpu * factor, rng))),
        mem=min(100.0, max(0.0, _jitter(baseline.mem * factor, rng))),
        net_in=_jitter(baseline.net_in * factor, rng),
        net_out=_jitter(baseline.net_out * factor, rng),
        msg_rate=msg_rate,
        battery=baseline.battery,
        failed_auth=baseline.failed_auth,
        timestamp=now_ms(),
    )


def display_name(device_type: str, index: int) -> str:
    """``door_lock``, 3 -> ``Door lock 3``."""
    label = device_type.replace("_", " ")
    return f"{label[0].upper()}{label[1:]} {index}"


def create_device(index: int, rng, device_type: str | None = None) -> Device:
    """Create device number *index* (1-based) with a random category."""
    if device_type is None:
        device_type = rng.choice(DEVICE_TYPES)
    _check_type(device_type)
    base = baseline_metrics(device_type)
    if device_type in BATTERY_TYPES:
        base.battery = 100.0

    now = now_ms()
    device = Device(
        device_id=f"device-{index}",
        name=display_name(device_type, index),
        device_type=device_type,
        weak_password=rng.random() < WEAK_PASSWORD_PROBABILITY,
        open_ports=default_open_ports(device_type),
        metrics=synthesize_metrics(base, 1.0, 1.0, rng),
        last_updated=now,
    )
    device.risk_score = calculate_risk(device)
    return device


def create_devices(count: int, rng) -> list[Device]:
    """Create *count* devices numbered ``device-1`` .. ``device-<count>``."""
    return [create_device(i + 1, rng) for i in range(count)]
