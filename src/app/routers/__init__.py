"""API routers for the IoT Security Lab."""

from app.routers.simulation import router as simulation_router
from app.routers.ws import router as ws_router

__all__ = ["simulation_router", "ws_router"]
