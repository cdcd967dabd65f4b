"""
Telemetry Server - Main orchestrator for all services
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional

# Local imports
from config_loader import DEFAULT_CONFIG_PATH, load_config, setup_logging
from active_sender import ActiveDispatcher, SnapshotMerger
from broadcast import BroadcastChannel
from one_wire import TemperaturePoller
from passive_endpoint import PassiveEndpoint
from services.shutdown import ShutdownCoordinator
from ups import PowerSupplyPoller

logger = logging.getLogger(__name__)


class TelemetryServer:
    """Main server wiring the source pollers to the active sender and the passive endpoint"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config = load_config(config_path)
            setup_logging(config)
        self.config = config

        self.shutdown = ShutdownCoordinator()
        self.temperature_channel = BroadcastChannel("temperature")
        self.supply_channel = BroadcastChannel("ups")

        # Consumers subscribe on construction, before any poller runs
        active_config = self.config.get('active_data_sender', {})
        self.merger: Optional[SnapshotMerger] = None
        self.dispatcher: Optional[ActiveDispatcher] = None
        if active_config.get('enabled', False):
            self.merger = SnapshotMerger(self.temperature_channel, self.supply_channel, self.shutdown)
            self.dispatcher = ActiveDispatcher(active_config, self.merger.snapshot_channel, self.shutdown)

        self.passive = PassiveEndpoint(
            self.config.get('passive_data_endpoint', {}),
            self.temperature_channel,
            self.supply_channel,
            self.shutdown,
            status_provider=self.get_status,
        )

        # Producers
        self.temperature_poller = TemperaturePoller(
            self.config.get('one_wire', {}), self.temperature_channel, self.shutdown
        )
        self.supply_poller = PowerSupplyPoller(
            self.config.get('ups_monitoring', {}), self.supply_channel, self.shutdown
        )

        self.tasks: List[asyncio.Task] = []
        self.started_at: Optional[datetime] = None

    async def _supervise(self, name: str, work: Awaitable):
        try:
            await work
        except Exception as e:
            logger.error(f"{name} failed: {e}")

    async def run(self):
        """Start every enabled service and wait until all of them have returned"""
        logger.info("Starting hardware telemetry daemon...")
        self.started_at = datetime.now(timezone.utc)

        services = [("Passive data endpoint", self.passive.run())]
        if self.merger and self.dispatcher:
            services.append(("Snapshot merger", self.merger.run()))
            services.append(("Active sender", self.dispatcher.run()))
        else:
            logger.info("Active sender disabled")
        services.append(("1-Wire poller", self.temperature_poller.run()))
        services.append(("UPS poller", self.supply_poller.run()))

        self.tasks = [asyncio.create_task(self._supervise(name, work)) for name, work in services]
        logger.info(f"All services started successfully ({len(self.tasks)} background tasks)")

        await asyncio.gather(*self.tasks)
        logger.info("Server stopped")

    def stop(self):
        """Request a graceful stop; run() returns once every loop has finished"""
        logger.info("Stopping server...")
        self.shutdown.fire()

    def get_status(self) -> Dict[str, Any]:
        """Module flags and counters for the health route"""
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "shutting_down": self.shutdown.is_set,
            "one_wire": {
                "enabled": self.temperature_poller.enabled,
                "cycles": self.temperature_poller.cycle_count,
                "published": self.temperature_poller.published_count,
            },
            "ups_monitoring": {
                "enabled": self.supply_poller.enabled,
                "servers": self.supply_poller.get_status(),
            },
            "active_data_sender": {
                "enabled": self.dispatcher is not None and self.dispatcher.enabled,
                "endpoints": self.dispatcher.get_status() if self.dispatcher else {},
            },
        }
