"""NATS endpoint: world server chat over the message bus.

The world server publishes channel messages as JSON on
``world.channel_message.out`` and admin broadcasts under
``global.admin_message.>``; it reads relayed chat from
``world.channel_message.in``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import nats

from adapters.endpoint import BaseEndpoint
from adapters.outbound_formatting import format_nats_payload
from core import channels
from core.config import NatsConfig
from core.errors import ConfigError, TransportError
from core.item_links import convert_links
from core.models import ChatMessage
from core.pump import DEFAULT_TIMEOUT
from core.sanitize import alphanumeric, sanitize

LOGGER = logging.getLogger(__name__)

CHANNEL_SUBJECT = "world.channel_message.out"
ADMIN_SUBJECT = "global.admin_message.>"
PUBLISH_SUBJECT = "world.channel_message.in"
ADMIN_DISCRIMINATOR = "admin"


def display_name(raw: str) -> str:
    """Render a bus sender as ``First`` or ``First [Last]``.

    The world server joins name parts with underscores; each part is
    reduced to letters and digits.
    """

    parts = [alphanumeric(part) for part in raw.replace("_", " ").split()]
    parts = [part for part in parts if part]
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]} [{' '.join(parts[1:])}]"


def parse_channel_message(
    data: bytes,
    item_url: str = "",
    convert_ooc_auction: bool = False,
    admin: bool = False,
) -> Optional[ChatMessage]:
    """Decode one bus payload; None when it is malformed or should be ignored."""

    try:
        payload = json.loads(data)
    except ValueError as exc:
        LOGGER.warning("nats failed to unmarshal channel message: %s", exc)
        return None
    if not isinstance(payload, dict):
        LOGGER.warning("nats channel message is not an object: %r", payload)
        return None

    text = str(payload.get("message", "") or "")
    # GM summons are echoed on the bus and must not leak to chat.
    if "Summoning you to" in text:
        LOGGER.debug("ignoring gm summon: %s", text)
        return None

    try:
        number = int(payload.get("chan_num") or 0)
        if payload.get("is_emote"):
            number = int(payload.get("type") or 0)
        guild_id = int(payload.get("guilddbid") or 0)
    except (TypeError, ValueError) as exc:
        LOGGER.warning("nats channel message has invalid numbers: %s", exc)
        return None
    if admin and not number:
        number = channels.ADMIN

    text = sanitize(convert_links(text, item_url))
    if not text.strip():
        LOGGER.debug("ignoring empty nats channel message")
        return None
    if convert_ooc_auction and number == channels.OOC and ("WTS " in text or "WTB " in text):
        number = channels.AUCTION

    return ChatMessage(
        source_endpoint="nats",
        author=display_name(str(payload.get("from", "") or "")),
        message=text,
        channel_number=number,
        discriminator=ADMIN_DISCRIMINATOR if admin else None,
        guild_id=guild_id or None,
    )


class NatsEndpoint(BaseEndpoint):
    def __init__(self, config: NatsConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__("nats", config, timeout)
        self._conn: Any = None
        self._closed: Optional[asyncio.Event] = None

    def validate(self, config: NatsConfig) -> None:
        if not config.host:
            raise ConfigError("nats: host must be set")

    async def _open(self) -> None:
        config: NatsConfig = self._config
        LOGGER.info("connecting to nats %s...", config.host)
        closed = asyncio.Event()
        self._closed = closed

        async def on_disconnected() -> None:
            closed.set()

        async def on_error(exc: Exception) -> None:
            LOGGER.warning("nats error: %s", exc)

        self._conn = await nats.connect(
            servers=[f"nats://{config.host}"],
            allow_reconnect=False,
            connect_timeout=self.connect_timeout,
            disconnected_cb=on_disconnected,
            closed_cb=on_disconnected,
            error_cb=on_error,
        )
        await self._conn.subscribe(CHANNEL_SUBJECT, cb=self._on_channel_message)
        await self._conn.subscribe(ADMIN_SUBJECT, cb=self._on_admin_message)

    async def _shutdown(self) -> None:
        conn = self._conn
        self._conn = None
        if conn is None or conn.is_closed:
            return
        try:
            await conn.drain()
        except Exception as exc:
            LOGGER.warning("nats drain: %s", exc)
            await conn.close()

    async def _read_loop(self) -> None:
        # Messages arrive through subscription callbacks; this task only
        # tracks the connection so a drop is noticed.
        if self._closed is None:
            return
        await self._closed.wait()
        raise TransportError("nats: connection lost")

    async def _on_channel_message(self, msg: Any) -> None:
        await self._handle(msg.data, admin=False)

    async def _on_admin_message(self, msg: Any) -> None:
        await self._handle(msg.data, admin=True)

    async def _handle(self, data: bytes, admin: bool) -> None:
        config: NatsConfig = self._config
        LOGGER.debug("processing nats message: %r", data)
        message = parse_channel_message(
            data,
            item_url=config.item_url,
            convert_ooc_auction=config.convert_ooc_auction,
            admin=admin,
        )
        if message is None:
            return
        await self._publish(message)

    async def _send(self, message: ChatMessage) -> None:
        if self._conn is None:
            raise TransportError("nats: no connection created")
        await self._conn.publish(PUBLISH_SUBJECT, format_nats_payload(message))
