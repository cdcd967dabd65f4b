"""
Main FastAPI application setup
Passive read API for the hardware telemetry daemon
"""

from fastapi import FastAPI
from typing import Any, Callable, Dict, Optional
import logging

from .reading_routes import create_reading_routes
from .system_routes import create_system_routes

logger = logging.getLogger(__name__)


class TelemetryAPI:
    """HTTP API serving cached sensor and UPS readings"""

    def __init__(self, cache, status_provider: Optional[Callable[[], Dict[str, Any]]] = None):
        self.cache = cache
        self.status_provider = status_provider
        self.app = FastAPI(
            title="Hardware Telemetry Daemon",
            description="Latest 1-Wire temperature and UPS readings",
            version="1.0.0"
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        self.app.include_router(create_reading_routes(self.cache))
        self.app.include_router(create_system_routes(self.cache, self.status_provider))
