"""SimulationEvent — immutable record of something notable in the simulation.

Events are created by the engine, handed to every registered listener,
and never mutated afterwards.  A missing ``device_id`` marks a
system-level event (start/pause/reset, fleet-wide toggles).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

EVENT_TYPES = frozenset({
    "info", "warning", "alert", "attack", "defense",
    "compromise", "tampering", "risk_change",
})
SEVERITIES = frozenset({"low", "medium", "high", "critical", "info"})


@dataclass(frozen=True)
class SimulationEvent:
    event_type: str
    severity: str
    message: str
    device_id: str | None = None
    device_name: str | None = None
    details: dict[str, Any] | None = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {self.event_type!r}")
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity!r}")

    @property
    def is_system(self) -> bool:
        return self.device_id is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.event_id,
            "timestamp": self.timestamp,
            "type": self.event_type,
            "severity": self.severity,
            "message": self.message,
        }
        if self.device_id is not None:
            data["deviceId"] = self.device_id
        if self.device_name is not None:
            data["deviceName"] = self.device_name
        if self.details is not None:
            data["details"] = dict(self.details)
        return data


def system_event(message: str, event_type: str = "info", severity: str = "info") -> SimulationEvent:
    """Build a system-level event (no device attached)."""
    return SimulationEvent(event_type=event_type, severity=severity, message=message)


def device_event(
    device,
    event_type: str,
    severity: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> SimulationEvent:
    """Build an event scoped to *device*."""
    return SimulationEvent(
        event_type=event_type,
        severity=severity,
        message=message,
        device_id=device.device_id,
        device_name=device.name,
        details=details,
    )
