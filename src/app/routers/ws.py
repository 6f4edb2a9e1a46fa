"""WebSocket endpoint for live simulation updates and commands."""

import asyncio
import json
import queue
import threading
from datetime import datetime, timezone
from typing import Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger
from pydantic import ValidationError

from app.models import AttackUpdate, DefenseUpdate
from engine.comms.event_bus import SIM_EVENT, EventBus

router = APIRouter(prefix="/ws", tags=["websocket"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """Manages WebSocket connections for real-time updates."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Broadcast a message to all connected clients."""
        if not self.active_connections:
            return

        message_str = json.dumps(message)
        disconnected = set()

        async with self._lock:
            for connection in self.active_connections:
                try:
                    await connection.send_text(message_str)
                except Exception as e:
                    logger.warning(f"Failed to send to websocket: {e}")
                    disconnected.add(connection)

            self.active_connections -= disconnected

    async def send_to(self, websocket: WebSocket, message: dict):
        """Send a message to a specific client."""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.warning(f"Failed to send to websocket: {e}")


# Global connection manager
manager = ConnectionManager()


def state_message(engine) -> dict:
    return {"type": "state", "data": engine.get_state().to_dict(), "timestamp": _now()}


@router.websocket("/live")
async def websocket_live(websocket: WebSocket):
    """Live updates (state, events) and simulation commands."""
    engine = getattr(websocket.app.state, "simulation_engine", None)
    await manager.connect(websocket)

    await manager.send_to(
        websocket,
        {"type": "connected", "timestamp": _now(), "message": "Simulation uplink established"},
    )
    if engine is not None:
        await manager.send_to(websocket, state_message(engine))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_to(websocket, {"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                await manager.send_to(websocket, {"type": "error", "message": "Expected a JSON object"})
                continue
            await handle_client_message(websocket, message, engine)
    except WebSocketDisconnect:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: dict, engine=None):
    """Handle messages from WebSocket clients.

    Every simulation command is answered with a fresh ``state`` message.
    """
    msg_type = message.get("type")
    payload = message.get("data")

    if msg_type == "ping":
        await manager.send_to(websocket, {"type": "pong", "timestamp": _now()})
        return

    if engine is None:
        await manager.send_to(
            websocket, {"type": "error", "message": "Simulation engine not available"}
        )
        return

    if msg_type == "getState":
        pass
    elif msg_type == "startSimulation":
        engine.start()
    elif msg_type == "pauseSimulation":
        engine.pause()
    elif msg_type == "resetSimulation":
        engine.reset()
    elif msg_type in ("setAttack", "setDefense"):
        model = AttackUpdate if msg_type == "setAttack" else DefenseUpdate
        try:
            update = model.model_validate(payload if isinstance(payload, dict) else {})
        except ValidationError as e:
            await manager.send_to(
                websocket,
                {"type": "error", "message": f"Invalid {msg_type} payload", "errors": [err["msg"] for err in e.errors()]},
            )
            return
        if msg_type == "setAttack":
            engine.set_attack_state(update.to_partial())
        else:
            engine.set_defense_state(update.to_partial())
    elif msg_type == "device:select":
        device = engine.get_device(str(payload)) if payload is not None else None
        if device is None:
            await manager.send_to(
                websocket, {"type": "error", "message": f"Device not found: {payload}"}
            )
        else:
            await manager.send_to(
                websocket, {"type": "device:selected", "data": device.to_dict()}
            )
        return
    else:
        await manager.send_to(
            websocket,
            {"type": "error", "message": f"Unknown message type: {msg_type}"},
        )
        return

    await manager.send_to(websocket, state_message(engine))


# Utility functions for broadcasting from other parts of the app
async def broadcast_event(event_data: dict):
    """Broadcast one simulation event to all clients."""
    await manager.broadcast({"type": "event", "data": event_data, "timestamp": _now()})


async def broadcast_state(engine):
    """Broadcast a full state snapshot to all clients."""
    await manager.broadcast(state_message(engine))


async def state_push_loop(engine, interval: float = 1.0):
    """Push the full state every *interval* seconds, regardless of tick rate."""
    while True:
        await asyncio.sleep(interval)
        try:
            await broadcast_state(engine)
        except Exception as e:
            logger.warning(f"State push failed: {e}")


class EngineEventBridge:
    """Forwards engine events from the threaded EventBus to WebSocket clients.

    The engine publishes from its loop threads; this bridge drains its bus
    subscription on a daemon thread and schedules broadcasts on the
    asyncio loop that owns the WebSocket connections.
    """

    def __init__(self, event_bus: EventBus, loop: asyncio.AbstractEventLoop):
        self._event_bus = event_bus
        self._loop = loop
        self._sub: queue.Queue | None = None
        self._running = False
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._sub = self._event_bus.subscribe()
        self._running = True
        self._thread = threading.Thread(
            target=self._bridge_loop, daemon=True, name="sim-ws-bridge"
        )
        self._thread.start()

    def _bridge_loop(self) -> None:
        while self._running:
            try:
                msg = self._sub.get(timeout=0.5)
            except queue.Empty:
                continue
            if msg.get("type") != SIM_EVENT:
                continue
            asyncio.run_coroutine_threadsafe(
                broadcast_event(msg.get("data", {})), self._loop
            )

    def stop(self) -> None:
        self._running = False
        if self._sub is not None:
            self._event_bus.unsubscribe(self._sub)
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
