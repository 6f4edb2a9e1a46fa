"""Simulation subsystem — IoT device model, attack/defense engine, scenarios."""
from .device import (
    BATTERY_TYPES,
    DEVICE_TYPES,
    Device,
    DeviceMetrics,
    baseline_metrics,
    create_device,
    create_devices,
    default_open_ports,
    synthesize_metrics,
)
from .engine import SimulationEngine
from .events import SimulationEvent, device_event, system_event
from .risk import BASE_RISK, calculate_risk
from .scenario import Scenario, get_scenario, list_scenarios
from .state import AttackState, DefenseState, SimulationState, create_initial_state

__all__ = [
    "AttackState",
    "BASE_RISK",
    "BATTERY_TYPES",
    "DEVICE_TYPES",
    "DefenseState",
    "Device",
    "DeviceMetrics",
    "Scenario",
    "SimulationEngine",
    "SimulationEvent",
    "SimulationState",
    "baseline_metrics",
    "calculate_risk",
    "create_device",
    "create_devices",
    "create_initial_state",
    "default_open_ports",
    "device_event",
    "get_scenario",
    "list_scenarios",
    "synthesize_metrics",
    "system_event",
]
