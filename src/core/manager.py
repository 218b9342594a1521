"""Manager: route inbound chat events to destination endpoints.

The manager is integration-agnostic. Endpoints hand it normalized
ChatMessages through ``chat_message``; it evaluates the routes configured
for the source endpoint and forwards each rendered message to the target
endpoint's own pump.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Iterable, List, Mapping, Optional

from core.errors import BridgeError
from core.models import ChatMessage, Dispatch
from core.ports import EndpointPort, GuildLookupPort
from core.pump import DEFAULT_TIMEOUT, Pump
from core.route_engine import Route, match_routes

LOGGER = logging.getLogger(__name__)


class Manager:
    """Owns the routing table and fans messages out, one message at a time."""

    def __init__(
        self,
        routes: Mapping[str, Iterable[Route]],
        guild_lookup: Optional[GuildLookupPort] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._routes = {source: list(source_routes) for source, source_routes in routes.items()}
        self._guild_lookup = guild_lookup
        self._endpoints: dict[str, EndpointPort] = {}
        self._pump = Pump("manager", timeout=timeout)
        self._pump.register(ChatMessage, self._on_chat_message)

    def add_endpoint(self, endpoint: EndpointPort) -> None:
        """Register a destination. Call before ``start``."""

        self._endpoints[endpoint.name] = endpoint

    @property
    def endpoints(self) -> dict[str, EndpointPort]:
        return dict(self._endpoints)

    def start(self) -> None:
        self._pump.start()

    async def stop(self) -> None:
        await self._pump.stop()

    async def chat_message(self, message: ChatMessage) -> List[Dispatch]:
        """Route one inbound message; returns the dispatches that were delivered."""

        return await self._pump.call(message)

    async def _on_chat_message(self, message: ChatMessage) -> List[Dispatch]:
        routes = self._routes.get(message.source_endpoint, [])
        LOGGER.debug(
            "[%s] %s: %s (%s routes)",
            message.source_endpoint,
            message.author,
            message.message,
            len(routes),
        )

        delivered: List[Dispatch] = []
        # Sequential fan-out: each destination call carries its own timeout,
        # so a stuck endpoint delays but never blocks later targets forever.
        for dispatch in match_routes(message, routes, self._guild_lookup):
            endpoint = self._endpoints.get(dispatch.target)
            if endpoint is None:
                LOGGER.warning(
                    "Route %s from %s: unknown target %s, skipping",
                    dispatch.route_index,
                    message.source_endpoint,
                    dispatch.target,
                )
                continue

            outgoing = replace(
                message,
                destination_endpoint=dispatch.target,
                channel_id=dispatch.channel_id,
                author=dispatch.author,
                message=dispatch.text,
                guild_id=int(dispatch.guild_id) if dispatch.guild_id.isdigit() else message.guild_id,
            )
            try:
                await endpoint.send_message(outgoing)
            except BridgeError as exc:
                LOGGER.error(
                    "[%s->%s] failed to send %s: %s (%s)",
                    message.source_endpoint,
                    dispatch.target,
                    dispatch.author,
                    dispatch.text,
                    exc,
                )
                continue
            LOGGER.info(
                "[%s->%s] %s: %s",
                message.source_endpoint,
                dispatch.target,
                dispatch.channel_id,
                dispatch.text,
            )
            delivered.append(dispatch)
        return delivered
