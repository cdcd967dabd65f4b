"""
Active sender - pushes the merged snapshot to every configured endpoint
One independent worker per endpoint, each with its own cooldown clock and
HTTP session so a slow or failing endpoint never delays the others
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from broadcast import WatchChannel, WatchReceiver
from hardware import Endpoint, Snapshot
from http_helper import PushClient, PushConnectionError
from services.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)

MIN_COOLDOWN_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 5.0


class EndpointWorker:
    """Consumer loop for one push endpoint"""

    def __init__(
        self,
        endpoint: Endpoint,
        receiver: WatchReceiver,
        transport: PushClient,
        cooldown: float,
        shutdown: ShutdownCoordinator,
        ignore_connection_errors: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.endpoint = endpoint
        self.receiver = receiver
        self.transport = transport
        self.cooldown = max(cooldown, MIN_COOLDOWN_SECONDS)
        self.shutdown = shutdown
        self.ignore_connection_errors = ignore_connection_errors
        self._clock = clock

        self.last_attempt: Optional[float] = None
        self.stats = {'sent': 0, 'skipped': 0, 'failed': 0}

    def in_cooldown(self) -> bool:
        if self.last_attempt is None:
            return False
        return self._clock() - self.last_attempt <= self.cooldown

    async def send_current(self) -> bool:
        """Push the snapshot as it is right now, returns True on a 2xx"""
        snapshot: Snapshot = self.receiver.borrow()
        url = self.endpoint.url
        try:
            status = await self.transport.post(
                url, snapshot.to_dict(), self.endpoint.bearer_token, REQUEST_TIMEOUT_SECONDS
            )
            if 200 <= status < 300:
                self.stats['sent'] += 1
                logger.debug(f"Pushed {len(snapshot.sensors)} sensors / {len(snapshot.supplies)} UPS to {url}")
                return True
            self.stats['failed'] += 1
            logger.warning(f"Got {status} response from {url}")
        except PushConnectionError as e:
            self.stats['failed'] += 1
            if not self.ignore_connection_errors:
                logger.warning(f"Connection to {url} failed: {e}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.stats['failed'] += 1
            logger.warning(f"Push to {url} failed: {type(e).__name__}: {e}")
        finally:
            self.last_attempt = self._clock()
        return False

    async def run(self):
        logger.info(f"Active sender started for {self.endpoint.url} (cooldown {self.cooldown}s)")
        try:
            while True:
                fired, _ = await self.shutdown.race(self.receiver.changed())
                if fired:
                    break
                if self.in_cooldown():
                    self.stats['skipped'] += 1
                    logger.debug(f"Skipping because of cooldown: {self.endpoint.url}")
                    continue
                try:
                    await self.send_current()
                except Exception as e:
                    logger.error(f"Active sender error for {self.endpoint.url}: {e}")
        finally:
            await self.transport.close()
            logger.info(f"Active sender stopped for {self.endpoint.url}")


class ActiveDispatcher:
    """Spawns one EndpointWorker per configured endpoint"""

    def __init__(
        self,
        config: Dict[str, Any],
        snapshot_channel: WatchChannel,
        shutdown: ShutdownCoordinator,
        transport_factory: Optional[Callable[[], PushClient]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.enabled = config.get('enabled', False)
        self.cooldown = max(float(config.get('cooldown_seconds', 10)), MIN_COOLDOWN_SECONDS)
        self.ignore_connection_errors = config.get('ignore_connection_errors', False)
        self.endpoints = [
            Endpoint(url=e['url'], bearer_token=e.get('bearer_token'))
            for e in (config.get('endpoints') or [])
        ]
        self.shutdown = shutdown

        if transport_factory is None:
            ssl_verify = config.get('ssl_verify', True)
            ca_cert_path = config.get('ca_cert_path')

            def transport_factory():
                return PushClient(REQUEST_TIMEOUT_SECONDS, ssl_verify, ca_cert_path)

        self.workers: List[EndpointWorker] = [
            EndpointWorker(
                endpoint,
                snapshot_channel.subscribe(),
                transport_factory(),
                self.cooldown,
                shutdown,
                ignore_connection_errors=self.ignore_connection_errors,
                clock=clock,
            )
            for endpoint in self.endpoints
        ]

    async def run(self):
        if not self.enabled:
            logger.info("Active sender disabled")
            return
        if not self.workers:
            logger.warning("Active sender enabled but no endpoints configured")
            return

        await asyncio.gather(*(worker.run() for worker in self.workers))

    def get_status(self) -> Dict[str, Any]:
        return {worker.endpoint.url: dict(worker.stats) for worker in self.workers}
