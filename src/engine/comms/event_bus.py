"""EventBus — thread-safe pub/sub between the engine and the transport.

The engine calls its listeners synchronously from whichever thread ran
the step.  Listeners must not block, so the transport side registers a
single publisher (see ``connect_engine``) that drops messages onto
bounded queues; the WebSocket bridge drains its queue on its own thread.
"""

from __future__ import annotations

import queue
import threading
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from engine.simulation.engine import SimulationEngine
    from engine.simulation.events import SimulationEvent

SIM_EVENT = "sim_event"


class EventBus:
    """Simple thread-safe pub/sub for pushing events to subscribers."""

    QUEUE_SIZE = 1000

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[queue.Queue] = []

    def subscribe(self) -> queue.Queue:
        """Subscribe to events. Returns a Queue that receives all events."""
        q: queue.Queue = queue.Queue(maxsize=self.QUEUE_SIZE)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event_type: str, data: dict | None = None) -> None:
        msg = {"type": event_type}
        if data is not None:
            msg["data"] = data
        with self._lock:
            for q in self._subscribers:
                try:
                    q.put_nowait(msg)
                except queue.Full:
                    # Drop oldest message so the newest event always lands.
                    try:
                        q.get_nowait()
                    except queue.Empty:
                        pass
                    try:
                        q.put_nowait(msg)
                    except queue.Full:
                        pass


def connect_engine(
    engine: SimulationEngine, bus: EventBus
) -> Callable[[SimulationEvent], None]:
    """Forward every engine event to *bus* as a ``sim_event`` message.

    Returns the registered listener so the caller can detach it with
    ``engine.remove_event_listener``.
    """
    def _publish(event: SimulationEvent) -> None:
        bus.publish(SIM_EVENT, event.to_dict())

    return engine.add_event_listener(_publish)
