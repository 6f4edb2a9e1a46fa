"""SimulationEngine — owner of the IoT lab state and its three timed loops.

Architecture
------------
The engine is the authoritative owner of the single SimulationState.  All
mutation happens here; everything else gets deep copies from get_state()
or sends commands (start/pause/reset, set_attack_state, set_defense_state,
apply_scenario).

While running it drives three daemon threads:

  1. sim-tick (tick_interval, default 500 ms) — for every device, in list
     order: attack effects, then defense mitigations, then normalization.

  2. sim-metrics (1000 ms) — resynthesizes each device's metrics from its
     category baseline, scaled up when compromised or tampered.  The
     failed-auth counter decays by one with probability 0.3.

  3. sim-risk (5000 ms) — recomputes risk scores and reports jumps of more
     than 15 points as ``risk_change`` events.

Every loop body runs under one re-entrant lock, so a tick sees its own
writes (defense mitigation reads the same-tick attack output) and a
snapshot never observes a half-applied step.  Each run of the loops owns
a stop Event; a step re-checks it while holding the lock, so once pause()
or reset() returns no further step can touch the state.

Events:
  Listeners registered with add_event_listener() are called synchronously,
  in registration order, for every event.  A listener that raises is
  logged and skipped; the loop keeps going.

Randomness:
  All random draws go through ``rng`` (anything with ``random()`` and
  ``choice()``), so tests can pin every trigger and jitter.
"""

from __future__ import annotations

import copy
import math
import random
import threading
from collections import deque
from dataclasses import asdict
from typing import Any, Callable

from loguru import logger

from .device import Device, baseline_metrics, now_ms, synthesize_metrics
from .events import SimulationEvent, device_event, system_event
from .risk import RISK_CHANGE_THRESHOLD, calculate_risk
from .scenario import get_scenario
from .state import (
    DEFAULT_DEVICE_COUNT,
    DEFAULT_TICK_INTERVAL_MS,
    SimulationState,
    create_initial_state,
)

EventListener = Callable[[SimulationEvent], Any]

METRIC_UPDATE_INTERVAL_MS = 1000
RISK_UPDATE_INTERVAL_MS = 5000

# Attack tuning
SEVERITY_HIGH_INTENSITY = 70
TAMPER_PROBABILITY = 0.05
COMPROMISE_FACTOR = 0.05
ALERT_FACTOR = 0.1

# Metric refresh multipliers
COMPROMISED_MULTIPLIER = 1.5
TAMPERED_MULTIPLIER = 1.3
FAILED_AUTH_DECAY_PROBABILITY = 0.3

# Defense limits
RATE_LIMIT_NET_IN = 1000.0
RATE_LIMIT_MSG_RATE = 100.0
LOCKOUT_THRESHOLD = 5

# Normalization
MEM_FLOOR = 1.0
BATTERY_DRAIN_PER_TICK = 0.01

EVENT_HISTORY = 200


class SimulationEngine:
    """Owns the simulation state and runs the tick, metric and risk loops."""

    def __init__(
        self,
        device_count: int = DEFAULT_DEVICE_COUNT,
        tick_interval: int = DEFAULT_TICK_INTERVAL_MS,
        rng=None,
        metric_interval: int = METRIC_UPDATE_INTERVAL_MS,
        risk_interval: int = RISK_UPDATE_INTERVAL_MS,
    ) -> None:
        self._rng = rng if rng is not None else random.Random()
        self._device_count = device_count
        self._tick_interval = tick_interval
        self._metric_interval = metric_interval
        self._risk_interval = risk_interval
        self._lock = threading.RLock()
        self._listeners: list[EventListener] = []
        self._recent_events: deque[SimulationEvent] = deque(maxlen=EVENT_HISTORY)
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._state = self._create_state()

    def _create_state(self) -> SimulationState:
        return create_initial_state(
            self._rng,
            device_count=self._device_count,
            tick_interval=self._tick_interval,
        )

    @property
    def running(self) -> bool:
        with self._lock:
            return self._state.running

    # -- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._state.running:
                return
            self._state.running = True
            self._state.started_at = now_ms()

            stop = threading.Event()
            self._stop = stop
            self._threads = [
                self._spawn("sim-tick", self.tick, self._state.tick_interval, stop),
                self._spawn("sim-metrics", self.refresh_metrics, self._metric_interval, stop),
                self._spawn("sim-risk", self.refresh_risk_scores, self._risk_interval, stop),
            ]
            self._emit(system_event("Simulation started"))
        logger.info(f"Simulation started ({self._tick_interval}ms tick)")

    def pause(self) -> None:
        with self._lock:
            threads = self._halt()
        self._join(threads)

    def reset(self) -> None:
        """Stop all loops and replace the whole state with a fresh one."""
        with self._lock:
            threads = self._halt()
            self._state = self._create_state()
            self._emit(system_event("Simulation reset to initial state"))
        self._join(threads)
        logger.info(f"Simulation reset ({self._device_count} devices)")

    def _halt(self) -> list[threading.Thread]:
        """Stop the loops if running.  Caller holds the lock."""
        if not self._state.running:
            return []
        self._stop.set()
        threads, self._threads = self._threads, []
        self._state.running = False
        self._emit(system_event("Simulation paused"))
        logger.info("Simulation paused")
        return threads

    @staticmethod
    def _join(threads: list[threading.Thread]) -> None:
        # Called from inside a step (e.g. a listener pausing): the lock is
        # still held, so the sibling loops cannot exit yet.  Their stop
        # Event is set; they return as soon as the step finishes.
        if threading.current_thread() in threads:
            return
        for thread in threads:
            thread.join(timeout=2.0)

    def _spawn(self, name: str, step: Callable[[], None], interval_ms: int,
               stop: threading.Event) -> threading.Thread:
        thread = threading.Thread(
            target=self._run_loop, args=(step, interval_ms / 1000.0, stop),
            name=name, daemon=True,
        )
        thread.start()
        return thread

    def _run_loop(self, step: Callable[[], None], interval: float,
                  stop: threading.Event) -> None:
        while not stop.wait(interval):
            with self._lock:
                if stop.is_set():
                    return
                try:
                    step()
                except Exception:
                    logger.exception(f"Simulation step {step.__name__} failed")

    # -- Commands -----------------------------------------------------------

    def set_attack_state(self, partial: dict[str, Any] | None = None, **fields: Any) -> None:
        """Merge a partial AttackState.

        Toggling ``firmware_tamper`` also flips integrity_risk on every
        device immediately and emits one fleet-wide event.
        """
        update = dict(partial or {}, **fields)
        with self._lock:
            applied = self._state.attack.merge(update)
            if "firmware_tamper" in applied:
                tampered = bool(applied["firmware_tamper"])
                for device in self._state.devices:
                    device.integrity_risk = tampered
                if tampered:
                    self._emit(system_event(
                        "Firmware tampering detected across all devices!",
                        event_type="tampering", severity="critical",
                    ))
                else:
                    self._emit(system_event("Firmware integrity restored"))

    def set_defense_state(self, partial: dict[str, Any] | None = None, **fields: Any) -> None:
        """Merge a partial DefenseState.  Effects land on the next tick."""
        update = dict(partial or {}, **fields)
        with self._lock:
            applied = self._state.defense.merge(update)
            if "signature_check" in applied:
                state = "enabled" if applied["signature_check"] else "disabled"
                self._emit(system_event(f"Signature verification {state}"))

    def apply_scenario(self, scenario_id: str) -> SimulationState:
        """Load a preset attack/defense configuration, starting if it asks to."""
        scenario = get_scenario(scenario_id)
        if scenario is None:
            raise KeyError(scenario_id)
        with self._lock:
            self.set_attack_state(asdict(scenario.attack))
            self.set_defense_state(asdict(scenario.defense))
            self._emit(system_event(f"Scenario loaded: {scenario.name}"))
            if scenario.start:
                self.start()
            return self.get_state()

    # -- Reads --------------------------------------------------------------

    def get_state(self) -> SimulationState:
        """Deep, independent copy of the current state."""
        with self._lock:
            return copy.deepcopy(self._state)

    def get_device(self, device_id: str) -> Device | None:
        with self._lock:
            device = self._state.get_device(device_id)
            return copy.deepcopy(device) if device is not None else None

    def get_recent_events(self, limit: int | None = None) -> list[SimulationEvent]:
        """Most recent events, oldest first."""
        with self._lock:
            events = list(self._recent_events)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    # -- Listeners ----------------------------------------------------------

    def add_event_listener(self, listener: EventListener) -> EventListener:
        """Register *listener*.  The return value is the removal handle."""
        with self._lock:
            self._listeners.append(listener)
        return listener

    def remove_event_listener(self, listener: EventListener) -> bool:
        """Remove *listener* by identity.  Returns False if not registered."""
        with self._lock:
            for i, registered in enumerate(self._listeners):
                if registered is listener:
                    del self._listeners[i]
                    return True
        return False

    def _emit(self, event: SimulationEvent, device: Device | None = None) -> None:
        if device is not None:
            device.last_event = event
        self._recent_events.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Simulation event listener failed: {e}")

    # -- Tick ---------------------------------------------------------------

    def tick(self) -> None:
        """One attack/defense step over every device, in list order."""
        with self._lock:
            now = now_ms()
            for device in self._state.devices:
                self._apply_attack_effects(device)
                self._apply_defense_mitigations(device)
                self._normalize_metrics(device)
                device.last_updated = now
            self._state.last_updated = now

    def _apply_attack_effects(self, device: Device) -> None:
        attack = self._state.attack
        metrics = device.metrics
        rand = self._rng.random

        if attack.syn_flood > 0:
            strength = attack.syn_flood / 100
            metrics.net_in += 500 * strength * (1 + rand())
            metrics.cpu += 10 * strength * (1 + rand())
            if rand() < ALERT_FACTOR * strength:
                self._emit(device_event(
                    device, "attack", self._flood_severity(attack.syn_flood),
                    f"Unusual network activity on {device.name} ({device.device_id}): SYN flood",
                    details={"vector": "syn_flood", "intensity": attack.syn_flood},
                ), device)

        if attack.dictionary_attack > 0 and not device.compromised:
            strength = attack.dictionary_attack / 100
            metrics.failed_auth = (metrics.failed_auth or 0) + math.floor(5 * strength)
            if device.weak_password and rand() < COMPROMISE_FACTOR * strength:
                device.compromised = True
                self._emit(device_event(
                    device, "compromise", "critical",
                    f"Device {device.name} ({device.device_id}) has been compromised!",
                    details={"vector": "dictionary_attack",
                             "failedAuth": math.floor(metrics.failed_auth)},
                ), device)

        if attack.mqtt_flood > 0:
            strength = attack.mqtt_flood / 100
            metrics.msg_rate = (metrics.msg_rate or 0) + 50 * strength * (1 + rand())
            metrics.cpu += 5 * strength * (1 + rand())
            if rand() < ALERT_FACTOR * strength:
                self._emit(device_event(
                    device, "attack", self._flood_severity(attack.mqtt_flood),
                    f"High message rate on {device.name} ({device.device_id}): MQTT flood",
                    details={"vector": "mqtt_flood", "rate": math.floor(metrics.msg_rate)},
                ), device)

        if attack.firmware_tamper and not device.integrity_risk:
            if rand() < TAMPER_PROBABILITY:
                device.integrity_risk = True
                self._emit(device_event(
                    device, "tampering", "critical",
                    f"Firmware tampering detected on {device.name} ({device.device_id})",
                    details={"firmwareVersion": device.firmware_version},
                ), device)

    @staticmethod
    def _flood_severity(intensity: float) -> str:
        return "high" if intensity > SEVERITY_HIGH_INTENSITY else "medium"

    def _apply_defense_mitigations(self, device: Device) -> None:
        defense = self._state.defense
        metrics = device.metrics

        if defense.rate_limiting:
            metrics.net_in = min(metrics.net_in, RATE_LIMIT_NET_IN)
            if metrics.msg_rate is not None:
                metrics.msg_rate = min(metrics.msg_rate, RATE_LIMIT_MSG_RATE)

        if defense.account_lockout and (metrics.failed_auth or 0) > LOCKOUT_THRESHOLD:
            metrics.failed_auth = LOCKOUT_THRESHOLD

        if defense.signature_check and device.integrity_risk:
            device.integrity_risk = False
            self._emit(device_event(
                device, "defense", "info",
                f"Firmware integrity restored on {device.name} ({device.device_id})",
                details={"action": "signature_verification"},
            ), device)

    @staticmethod
    def _normalize_metrics(device: Device) -> None:
        metrics = device.metrics
        metrics.cpu = min(100.0, max(0.0, metrics.cpu))
        metrics.mem = min(100.0, max(MEM_FLOOR, metrics.mem))
        metrics.net_in = max(0.0, metrics.net_in)
        metrics.net_out = max(0.0, metrics.net_out)
        if metrics.battery is not None:
            metrics.battery = max(0.0, metrics.battery - BATTERY_DRAIN_PER_TICK)

    # -- Metric refresh -----------------------------------------------------

    def refresh_metrics(self) -> None:
        """Resynthesize every device's metrics from its category baseline."""
        with self._lock:
            now = now_ms()
            for device in self._state.devices:
                base = baseline_metrics(device.device_type)
                # Counters carry over; only the load figures are resampled.
                base.failed_auth = device.metrics.failed_auth or 0
                base.battery = device.metrics.battery
                device.metrics = synthesize_metrics(
                    base,
                    COMPROMISED_MULTIPLIER if device.compromised else 1.0,
                    TAMPERED_MULTIPLIER if device.integrity_risk else 1.0,
                    self._rng,
                )
                if device.metrics.failed_auth > 0 and self._rng.random() < FAILED_AUTH_DECAY_PROBABILITY:
                    device.metrics.failed_auth = max(0, device.metrics.failed_auth - 1)
                device.last_updated = now
            self._state.last_updated = now

    # -- Risk refresh -------------------------------------------------------

    def refresh_risk_scores(self) -> None:
        """Recompute risk scores, reporting jumps above the change threshold."""
        with self._lock:
            for device in self._state.devices:
                old = device.risk_score
                device.risk_score = calculate_risk(device)
                if abs(device.risk_score - old) > RISK_CHANGE_THRESHOLD:
                    direction = "increased" if device.risk_score > old else "decreased"
                    self._emit(device_event(
                        device, "risk_change", "info",
                        f"Risk level {direction} for {device.name} ({device.device_id}): "
                        f"{round(device.risk_score)}/100",
                        details={"previous": old, "current": device.risk_score},
                    ), device)
