"""
Passive data endpoint - keeps the cache current and serves it over HTTP
"""

import asyncio
import contextlib
import logging
from typing import Any, Callable, Dict, Optional

import uvicorn

from api.main_api import TelemetryAPI
from broadcast import BroadcastChannel, Subscription
from services.shutdown import ShutdownCoordinator
from .cache import PassiveCache, TEMPERATURE, UPS

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 63623


class EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the daemon; it stops via should_exit"""

    def install_signal_handlers(self):
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class PassiveEndpoint:
    """Cache updater loops plus the uvicorn server exposing the read API"""

    def __init__(
        self,
        config: Dict[str, Any],
        temperature_channel: BroadcastChannel,
        supply_channel: BroadcastChannel,
        shutdown: ShutdownCoordinator,
        status_provider: Optional[Callable[[], Dict[str, Any]]] = None,
    ):
        self.enabled = config.get('enabled', False)
        self.host = config.get('host', DEFAULT_HOST)
        self.port = int(config.get('port', DEFAULT_PORT))
        self.shutdown = shutdown

        self.cache = PassiveCache()
        self.api = TelemetryAPI(self.cache, status_provider)

        self._subscriptions: Dict[str, Subscription] = {}
        if self.enabled:
            self._subscriptions = {
                TEMPERATURE: temperature_channel.subscribe(),
                UPS: supply_channel.subscribe(),
            }

    async def follow(self, family: str):
        """Copy every published list of family into the cache until shutdown"""
        subscription = self._subscriptions[family]
        try:
            while True:
                fired, items = await self.shutdown.race(subscription.recv())
                if fired:
                    break
                self.cache.set(family, items)
        finally:
            subscription.close()

    async def _stop_on_shutdown(self, server: uvicorn.Server):
        await self.shutdown.wait()
        server.should_exit = True

    async def serve(self):
        config = uvicorn.Config(
            self.api.app,
            host=self.host,
            port=self.port,
            log_level="info",
            access_log=False
        )
        server = EmbeddedServer(config)

        logger.info(f"Starting passive data endpoint on {self.host}:{self.port}")
        stopper = asyncio.create_task(self._stop_on_shutdown(server))
        try:
            await server.serve()
        except (OSError, SystemExit) as e:
            # uvicorn exits the process on bind failure
            logger.error(f"Passive data endpoint failed on {self.host}:{self.port}: {e!r}")
        finally:
            stopper.cancel()
        logger.info("Passive data endpoint stopped")

    async def run(self):
        if not self.enabled:
            logger.info("Passive data endpoint disabled")
            return

        await asyncio.gather(
            self.follow(TEMPERATURE),
            self.follow(UPS),
            self.serve(),
        )
