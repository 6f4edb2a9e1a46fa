"""IoT Security Lab — attack/defense simulation server.

Main FastAPI application.
"""

import asyncio
import sys
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.config import settings
from app.routers import simulation_router, ws_router
from app.routers.ws import EngineEventBridge, state_push_loop
from engine.comms.event_bus import EventBus, connect_engine
from engine.simulation import SimulationEngine


def _configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if settings.debug else settings.log_level)


def _create_simulation_engine() -> SimulationEngine:
    """Create the process-wide SimulationEngine from settings."""
    engine = SimulationEngine(
        device_count=settings.simulation_device_count,
        tick_interval=settings.simulation_tick_interval_ms,
    )
    logger.info(
        f"Simulation engine created ({settings.simulation_device_count} devices, "
        f"{settings.simulation_tick_interval_ms}ms tick)"
    )
    return engine


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    _configure_logging()
    logger.info("=" * 60)
    logger.info(f"  {settings.app_name.upper()} - INITIALIZING")
    logger.info("=" * 60)

    engine = _create_simulation_engine()
    event_bus = EventBus()
    listener = connect_engine(engine, event_bus)
    app.state.simulation_engine = engine
    app.state.event_bus = event_bus

    bridge = EngineEventBridge(event_bus, asyncio.get_running_loop())
    bridge.start()
    logger.info("Simulation event bridge started")

    push_task = asyncio.create_task(state_push_loop(engine, settings.state_push_interval))

    if settings.simulation_autostart:
        engine.start()

    yield

    logger.info("Shutting down...")
    push_task.cancel()
    with suppress(asyncio.CancelledError):
        await push_task
    bridge.stop()
    engine.remove_event_listener(listener)
    engine.pause()
    logger.info("Shutdown complete")


app = FastAPI(
    title="IoT Security Lab",
    description="Educational IoT attack/defense simulation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(simulation_router)
app.include_router(ws_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "app": settings.app_name}


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    run()
