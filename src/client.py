"""Relay client for eqrelay.

We explicitly manage the lifecycle (start, connect, stop) so it is obvious
when connections are created and when they end. The client owns the
lookup stores, the manager, one endpoint per enabled section and the
keep-alive supervisor.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from adapters.discord_endpoint import DiscordEndpoint
from adapters.endpoint import BaseEndpoint
from adapters.eqlog_endpoint import EQLogEndpoint
from adapters.file_stores import GuildStore, UserStore
from adapters.nats_endpoint import NatsEndpoint
from adapters.sqlite_registrations import SQLiteRegistrations
from adapters.telnet_endpoint import TelnetEndpoint
from core.config import BridgeConfig
from core.errors import BridgeError
from core.lifecycle import KeepAlive
from core.manager import Manager

LOGGER = logging.getLogger(__name__)

STORE_POLL_INTERVAL = 5.0


class Client:
    def __init__(self, config: BridgeConfig) -> None:
        self.config = config
        self.users = UserStore(config.users_database)
        self.guilds = GuildStore(config.guilds_database)
        self.registrations = SQLiteRegistrations(config.registrations_database)
        self.manager = Manager(config.routes, guild_lookup=self.guilds, timeout=config.pump_timeout)
        self.endpoints: list[BaseEndpoint] = self._build_endpoints()
        self.keep_alive: Optional[KeepAlive] = None
        self._watchers: list[asyncio.Task] = []

    def _build_endpoints(self) -> list[BaseEndpoint]:
        config = self.config
        timeout = config.pump_timeout
        endpoints: list[BaseEndpoint] = []
        if config.telnet.enabled:
            endpoints.append(TelnetEndpoint(config.telnet, timeout=timeout))
        if config.nats.enabled:
            endpoints.append(NatsEndpoint(config.nats, timeout=timeout))
        if config.discord.enabled:
            endpoints.append(
                DiscordEndpoint(
                    config.discord,
                    users=self.users,
                    registrations=self.registrations,
                    guilds=self.guilds,
                    timeout=timeout,
                )
            )
        if config.eqlog.enabled:
            endpoints.append(EQLogEndpoint(config.eqlog, timeout=timeout))
        return endpoints

    async def start(self) -> None:
        """Load stores, start pumps, subscribe the manager and connect."""

        self.users.reload()
        self.guilds.reload()
        self.registrations.init_db()
        removed = self.registrations.cleanup_expired()
        if removed:
            LOGGER.info("Removed %s expired registrations", removed)

        loop = asyncio.get_running_loop()
        for store in (self.users, self.guilds):
            self._watchers.append(loop.create_task(store.watch(STORE_POLL_INTERVAL)))

        self.manager.start()
        for endpoint in self.endpoints:
            self.manager.add_endpoint(endpoint)
            endpoint.start()
            await endpoint.subscribe(self.manager.chat_message)

        await self.connect_all()

        if self.config.keep_alive:
            self.keep_alive = KeepAlive(self.endpoints, self.config.keep_alive_retry)
            self.keep_alive.start()
            LOGGER.info("Keep alive enabled, retrying every %ss", self.keep_alive.interval)

    async def connect_all(self) -> None:
        """Connect every endpoint; without keep-alive a failure is fatal."""

        for endpoint in self.endpoints:
            try:
                await endpoint.connect()
            except BridgeError as exc:
                if not self.config.keep_alive:
                    raise
                LOGGER.warning("%s connect failed, keep alive will retry: %s", endpoint.name, exc)

    async def stop(self) -> None:
        if self.keep_alive is not None:
            await self.keep_alive.stop()
            self.keep_alive = None
        for task in self._watchers:
            task.cancel()
        self._watchers.clear()
        for endpoint in self.endpoints:
            await endpoint.shutdown()
        await self.manager.stop()
        LOGGER.info("All endpoints closed")

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
