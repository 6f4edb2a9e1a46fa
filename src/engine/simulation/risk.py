"""Risk scoring — a pure function of a device's current fields.

The engine recomputes scores on its slow (5 s) cadence; nothing else ever
writes ``Device.risk_score``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .device import Device

# Baseline exposure by category
BASE_RISK: dict[str, float] = {
    "door_lock": 60.0,
    "ip_camera": 45.0,
    "cctv": 40.0,
    "thermostat": 30.0,
    "smart_bulb": 25.0,
}

# Score change (absolute) that is worth a risk_change event
RISK_CHANGE_THRESHOLD = 15.0


def calculate_risk(device: Device) -> float:
    """Return the 0-100 risk score for *device*."""
    metrics = device.metrics
    score = BASE_RISK[device.device_type]

    if device.weak_password:
        score += 20

    if metrics.cpu > 80:
        score += 15
    elif metrics.cpu > 50:
        score += 7

    if metrics.net_in > 500 or metrics.net_out > 500:
        score += 15
    elif metrics.net_in > 200 or metrics.net_out > 200:
        score += 7

    failed_auth = metrics.failed_auth or 0
    if failed_auth > 5:
        score += 20
    elif failed_auth > 0:
        score += 5

    if device.compromised:
        score += 30
    if device.integrity_risk:
        score += 25

    return min(100.0, max(0.0, score))
