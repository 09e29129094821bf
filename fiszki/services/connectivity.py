"""Periodic connectivity probing."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..exceptions import FiszkiError

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """
    Calls ``on_change(online)`` whenever the probe result flips.

    The first check always reports, so the receiver starts from a known
    state. A coroutine returned by ``on_change`` is awaited; anything else
    (e.g. a scheduled task) is left alone.
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]],
        on_change: Callable[[bool], Any],
        interval: float = 15,
    ):
        self.probe = probe
        self.on_change = on_change
        self.interval = interval
        self.is_online: Optional[bool] = None
        self._task: Optional[asyncio.Task] = None

    async def check(self) -> bool:
        """Probe once and report a change. Returns the probe result."""
        try:
            online = bool(await self.probe())
        except (FiszkiError, OSError) as e:
            logger.debug("Connectivity probe failed: %s", e)
            online = False

        if online != self.is_online:
            self.is_online = online
            result = self.on_change(online)
            if asyncio.iscoroutine(result):
                await result
        return online

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self.interval)
