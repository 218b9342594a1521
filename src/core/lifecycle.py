"""Connection states and the keep-alive supervisor."""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Iterable, Optional

from core.ports import EndpointPort

LOGGER = logging.getLogger(__name__)

DEFAULT_RETRY = 10.0
MIN_RETRY = 2.0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class KeepAlive:
    """Periodically reconnect endpoints that are not connected."""

    def __init__(self, endpoints: Iterable[EndpointPort], interval: float = DEFAULT_RETRY) -> None:
        self._endpoints = list(endpoints)
        self.interval = max(float(interval), MIN_RETRY)
        self._task: Optional[asyncio.Task] = None

    async def check(self) -> int:
        """Try to reconnect every disconnected endpoint once.

        Returns how many endpoints were reconnected. Failures are logged and
        never raised so the supervisor keeps running.
        """

        reconnected = 0
        for endpoint in self._endpoints:
            if endpoint.is_connected:
                continue
            LOGGER.info("Attempting to reconnect to %s", endpoint.name)
            try:
                await endpoint.connect()
            except Exception as exc:
                LOGGER.warning("%s reconnect failed: %s", endpoint.name, exc)
                continue
            reconnected += 1
        return reconnected

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.check()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run(), name="keep-alive")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
