"""
Shutdown coordination for all long-running loops
A single fire-once signal that every loop races against its own work
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, Tuple

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Fire-once broadcast signal shared by every background task"""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def fire(self):
        """Request shutdown (idempotent)"""
        if self._event.is_set():
            return
        logger.info("Shutdown requested - notifying all loops")
        self._event.set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the shutdown signal
        With a timeout this doubles as an interruptible sleep:
        returns True if shutdown fired, False if the timeout elapsed first
        """
        if self._event.is_set():
            return True
        if timeout is None:
            await self._event.wait()
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, timeout))
            return True
        except asyncio.TimeoutError:
            return False

    async def race(self, awaitable: Awaitable) -> Tuple[bool, Any]:
        """
        Run awaitable until it completes or shutdown fires, whichever is first
        Returns (True, None) when shutdown won, (False, result) otherwise.
        Exceptions raised by the awaitable propagate to the caller.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return True, None

        work = asyncio.ensure_future(awaitable)
        stop = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            stop.cancel()
            raise

        if stop in done:
            work.cancel()
            try:
                await work
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Work interrupted by shutdown ended with: {e}")
            return True, None

        stop.cancel()
        return False, work.result()
