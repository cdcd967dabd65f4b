"""
1-Wire temperature polling loop
Publishes the filtered sensor list to the temperature channel once per cycle
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from broadcast import BroadcastChannel
from hardware import MeasuredTemperature
from services.shutdown import ShutdownCoordinator
from .scanner import OneWireScanner, DEFAULT_BASE_PATH

logger = logging.getLogger(__name__)

MIN_COOLDOWN_SECONDS = 0.2


class TemperaturePoller:
    """Periodically rescans the 1-Wire bus and publishes valid readings"""

    def __init__(
        self,
        config: Dict[str, Any],
        channel: BroadcastChannel,
        shutdown: ShutdownCoordinator,
        scanner: Optional[OneWireScanner] = None,
    ):
        self.enabled = config.get('enabled', False)
        self.cooldown = max(float(config.get('cooldown_seconds', 1)), MIN_COOLDOWN_SECONDS)
        self.scanner = scanner or OneWireScanner(config.get('base_path', DEFAULT_BASE_PATH))
        self.channel = channel
        self.shutdown = shutdown

        self.cycle_count = 0
        self.published_count = 0

    async def poll_once(self) -> List[MeasuredTemperature]:
        """Run one scan cycle and publish if anybody is listening"""
        readings = await asyncio.to_thread(self.scanner.read_all)
        self.cycle_count += 1

        if self.channel.receiver_count > 0:
            self.channel.publish(readings)
            self.published_count += 1
            logger.debug(f"Published {len(readings)} temperature readings")
        else:
            logger.debug("No temperature subscribers - skipping publish")
        return readings

    async def run(self):
        if not self.enabled:
            logger.info("1-Wire polling disabled")
            return

        logger.info(f"1-Wire polling started on {self.scanner.base_path} (every {self.cooldown}s)")

        while not self.shutdown.is_set:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"1-Wire polling error: {e}")

            if await self.shutdown.wait(timeout=self.cooldown):
                break

        logger.info(f"1-Wire polling stopped after {self.cycle_count} cycles")
