"""
Resilient connection management for one NUT server
Hides transient connectivity failures behind a query that waits (with
linear backoff) until the server is reachable again
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from hardware import PowerSupplyReading
from services.shutdown import ShutdownCoordinator
from .devices import NutServerConfig, PowerSupplyDevice
from .nut_session import open_session

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 3600.0

SessionFactory = Callable[[NutServerConfig], Awaitable[Any]]


class PowerSupplyConnectionManager:
    """
    Owns a lazily-established session to one NUT server
    Disconnected -> Connecting -> Connected, back to Disconnected when the
    liveness check fails. Every use of the session holds an exclusive lock.
    """

    def __init__(
        self,
        server: NutServerConfig,
        cooldown_base: float,
        shutdown: Optional[ShutdownCoordinator] = None,
        session_factory: SessionFactory = open_session,
    ):
        self.server = server
        self.server_id = server.server_id
        self.devices: List[PowerSupplyDevice] = server.build_devices()
        self.cooldown_base = cooldown_base
        self.shutdown = shutdown or ShutdownCoordinator()
        self._session_factory = session_factory

        self._session = None
        self._lock = asyncio.Lock()
        self.failed_attempts = 0

        self.stats = {
            'connect_attempts': 0,
            'connections': 0,
            'connection_losses': 0,
            'variable_failures': 0,
        }

    @property
    def connected(self) -> bool:
        return self._session is not None

    def backoff_delay(self) -> float:
        """Linear backoff, capped at one hour"""
        return min(self.cooldown_base * self.failed_attempts, MAX_BACKOFF_SECONDS)

    async def _drop_session(self):
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await session.close()
        except Exception as e:
            logger.debug(f"{self.server_id} - error closing session: {e}")

    async def is_connected(self) -> bool:
        async with self._lock:
            if self._session is None:
                return False
            try:
                alive = await self._session.is_alive()
            except Exception as e:
                logger.debug(f"{self.server_id} - liveness check raised: {e}")
                alive = False
            if alive:
                return True
            logger.warning(f"{self.server_id} - connection lost")
            self.stats['connection_losses'] += 1
            await self._drop_session()
            return False

    async def connect(self) -> bool:
        """Single connection attempt, returns True on success"""
        async with self._lock:
            self.failed_attempts += 1
            self.stats['connect_attempts'] += 1
            try:
                session = await self._session_factory(self.server)
            except Exception as e:
                logger.warning(
                    f"Failed to connect to UPS server {self.server_id}: {e} "
                    f"(next attempt in {self.backoff_delay():.1f}s)"
                )
                return False

            self.failed_attempts = 0
            self._session = session
            self.stats['connections'] += 1
            logger.info(f"{self.server_id} - Connected")
            return True

    async def connect_if_not_connected(self) -> bool:
        """
        Block until a live session exists
        Returns False only when shutdown fired while waiting out a backoff
        """
        while not await self.is_connected():
            delay = self.backoff_delay()
            if delay > 0:
                logger.debug(f"{self.server_id} - waiting {delay:.1f}s before reconnecting")
            if await self.shutdown.wait(timeout=delay):
                return False
            await self.connect()
        return True

    async def _query_device(self, device: PowerSupplyDevice) -> Dict[str, str]:
        variables: Dict[str, str] = {}
        async with self._lock:
            session = self._session
            if session is None:
                return variables
            for name in device.variables_to_monitor:
                if getattr(session, 'closed', False):
                    logger.warning(f"{self.server_id} - session broke while reading UPS {device.meta.id}")
                    break
                try:
                    variables[name] = await session.get_variable(device.ups_name, name)
                except Exception as e:
                    self.stats['variable_failures'] += 1
                    logger.warning(f"Failed to get variable {name} from UPS {device.meta.id}: {e}")
        return variables

    async def query_all_supplies(self) -> Optional[List[PowerSupplyReading]]:
        """
        Read every configured variable of every UPS on this server
        Returns None when shutdown interrupted the reconnect wait
        """
        if not await self.connect_if_not_connected():
            return None

        readings = []
        for device in self.devices:
            variables = await self._query_device(device)
            readings.append(PowerSupplyReading(meta=device.meta, variables=variables))
        return readings

    async def close(self):
        async with self._lock:
            await self._drop_session()
