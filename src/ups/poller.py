"""
UPS monitoring loops - one worker per NUT server
Each worker refreshes its own slice of the family; the whole family list is
republished after every refresh
"""

import asyncio
import logging
from typing import Any, Dict, List

from broadcast import BroadcastChannel
from hardware import PowerSupplyReading
from services.shutdown import ShutdownCoordinator
from .connection import PowerSupplyConnectionManager, SessionFactory
from .devices import NutServerConfig
from .nut_session import open_session

logger = logging.getLogger(__name__)

MIN_COOLDOWN_SECONDS = 0.2


class PowerSupplyPoller:
    """Polls every configured NUT server and publishes power-supply readings"""

    def __init__(
        self,
        config: Dict[str, Any],
        channel: BroadcastChannel,
        shutdown: ShutdownCoordinator,
        session_factory: SessionFactory = open_session,
    ):
        self.enabled = config.get('enabled', False)
        self.cooldown = max(float(config.get('cooldown_seconds', 5)), MIN_COOLDOWN_SECONDS)
        self.channel = channel
        self.shutdown = shutdown

        self.managers: List[PowerSupplyConnectionManager] = [
            PowerSupplyConnectionManager(
                NutServerConfig.from_dict(server),
                cooldown_base=self.cooldown,
                shutdown=shutdown,
                session_factory=session_factory,
            )
            for server in (config.get('servers') or [])
        ]

        # server_id -> latest readings of that server
        self._latest: Dict[str, List[PowerSupplyReading]] = {}

    def combined_readings(self) -> List[PowerSupplyReading]:
        """Latest readings of all servers, in configuration order"""
        readings: List[PowerSupplyReading] = []
        for manager in self.managers:
            readings.extend(self._latest.get(manager.server_id, []))
        return readings

    async def poll_server(self, manager: PowerSupplyConnectionManager) -> bool:
        """One refresh of one server, returns False if shutdown interrupted it"""
        readings = await manager.query_all_supplies()
        if readings is None:
            return False

        self._latest[manager.server_id] = readings
        if self.channel.receiver_count > 0:
            self.channel.publish(self.combined_readings())
            logger.debug(f"Published UPS readings after refresh of {manager.server_id}")
        return True

    async def _server_loop(self, manager: PowerSupplyConnectionManager):
        logger.info(f"UPS monitoring started for {manager.server_id} "
                    f"({len(manager.devices)} UPS, every {self.cooldown}s)")
        try:
            while not self.shutdown.is_set:
                try:
                    if not await self.poll_server(manager):
                        break
                except Exception as e:
                    logger.error(f"UPS monitoring error for {manager.server_id}: {e}")

                if await self.shutdown.wait(timeout=self.cooldown):
                    break
        finally:
            await manager.close()
            logger.info(f"UPS monitoring stopped for {manager.server_id}")

    async def run(self):
        if not self.enabled:
            logger.info("UPS monitoring disabled")
            return
        if not self.managers:
            logger.warning("UPS monitoring enabled but no servers configured")
            return

        await asyncio.gather(*(self._server_loop(m) for m in self.managers))

    def get_status(self) -> Dict[str, Any]:
        return {
            manager.server_id: {
                'connected': manager.connected,
                'failed_attempts': manager.failed_attempts,
                **manager.stats,
            }
            for manager in self.managers
        }
