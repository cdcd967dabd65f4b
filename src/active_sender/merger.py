"""
Fan-in of the family channels into one snapshot
Any family update republishes the whole snapshot, not just the changed part
"""

import asyncio
import logging
from typing import Callable, List

from broadcast import BroadcastChannel, Subscription, WatchChannel
from hardware import MeasuredTemperature, PowerSupplyReading, Snapshot
from services.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


class SnapshotMerger:
    """Keeps the last value of every family and republishes the combination"""

    def __init__(
        self,
        temperature_channel: BroadcastChannel,
        supply_channel: BroadcastChannel,
        shutdown: ShutdownCoordinator,
    ):
        self.shutdown = shutdown
        self.snapshot_channel: WatchChannel[Snapshot] = WatchChannel("snapshot", Snapshot())

        self._sensors: List[MeasuredTemperature] = []
        self._supplies: List[PowerSupplyReading] = []

        # Subscribe now so the pollers see a receiver from their first cycle
        self._temperature_sub = temperature_channel.subscribe()
        self._supply_sub = supply_channel.subscribe()

        self.merge_count = 0

    def current(self) -> Snapshot:
        return self.snapshot_channel.value

    def update_sensors(self, sensors: List[MeasuredTemperature]):
        self._sensors = list(sensors)
        self._publish()

    def update_supplies(self, supplies: List[PowerSupplyReading]):
        self._supplies = list(supplies)
        self._publish()

    def _publish(self):
        self.merge_count += 1
        self.snapshot_channel.send(Snapshot(sensors=list(self._sensors), supplies=list(self._supplies)))

    async def _follow(self, subscription: Subscription, apply: Callable[[list], None], family: str):
        try:
            while True:
                fired, value = await self.shutdown.race(subscription.recv())
                if fired:
                    break
                logger.debug(f"{family} changed - republishing snapshot")
                apply(value)
        finally:
            subscription.close()
            logger.debug(f"Stopped following {family} updates")

    async def run(self):
        logger.info("Snapshot merger started")
        await asyncio.gather(
            self._follow(self._temperature_sub, self.update_sensors, "temperature"),
            self._follow(self._supply_sub, self.update_supplies, "ups"),
        )
        logger.info(f"Snapshot merger stopped after {self.merge_count} merges")
