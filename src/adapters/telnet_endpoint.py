"""Telnet endpoint: the EverQuest world server console.

Logs into the console, enables message echo, and turns world chat lines
into ChatMessages. Outbound messages become ``emote world`` or
``guildsay`` console commands.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from adapters.endpoint import BaseEndpoint
from adapters.outbound_formatting import format_telnet_command
from adapters.telnet_parser import (
    LOCAL_ADMIN_BANNER,
    PASSWORD_PROMPT,
    USERNAME_PROMPT,
    parse_line,
    strip_iac,
)
from core.config import TelnetConfig
from core.errors import ConfigError, TransportError
from core.models import ChatMessage
from core.pump import DEFAULT_TIMEOUT

LOGGER = logging.getLogger(__name__)

ENCODING = "latin-1"


def split_host(host: str) -> tuple[str, int]:
    """Split ``host:port``; raise ConfigError when either part is missing."""

    address, _, port = host.rpartition(":")
    if not address or not port.isdigit():
        raise ConfigError(f"telnet: host must be host:port, got {host!r}")
    return address, int(port)


class TelnetEndpoint(BaseEndpoint):
    def __init__(self, config: TelnetConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__("telnet", config, timeout)
        self._stream_reader: Optional[asyncio.StreamReader] = None
        self._stream_writer: Optional[asyncio.StreamWriter] = None

    @property
    def announce_status(self) -> bool:
        return self._config.announce_server_status

    def validate(self, config: TelnetConfig) -> None:
        split_host(config.host)

    async def _open(self) -> None:
        config: TelnetConfig = self._config
        host, port = split_host(config.host)
        deadline = config.message_deadline
        LOGGER.info("connecting to telnet %s...", config.host)

        self._stream_reader, self._stream_writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=deadline
        )
        index = await asyncio.wait_for(
            self._skip_until(USERNAME_PROMPT, LOCAL_ADMIN_BANNER), timeout=deadline
        )
        if index == 0:
            if not config.username:
                raise ConfigError("telnet: username/password must be set for older servers")
            await self._send_line(config.username)
            await asyncio.wait_for(self._skip_until(PASSWORD_PROMPT), timeout=deadline)
            await self._send_line(config.password)

        await self._send_line("echo off")
        await self._send_line("acceptmessages on")

    async def _shutdown(self) -> None:
        writer = self._stream_writer
        self._stream_reader = None
        self._stream_writer = None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as exc:
            LOGGER.debug("telnet close: %s", exc)

    async def _read_loop(self) -> None:
        config: TelnetConfig = self._config
        reader = self._stream_reader
        if reader is None:
            return
        while True:
            data = await reader.readline()
            if not data:
                raise TransportError("telnet: connection closed by server")
            line = strip_iac(data).decode(ENCODING, errors="replace")
            LOGGER.debug("raw telnet echo: %r", line)

            message = parse_line(
                line,
                item_url=config.item_url,
                legacy=config.legacy,
                convert_ooc_auction=config.convert_ooc_auction,
            )
            if message is None:
                continue
            await self._publish(message)

    async def _send(self, message: ChatMessage) -> None:
        await self._send_line(format_telnet_command(message))

    async def _send_line(self, text: str) -> None:
        writer = self._stream_writer
        if writer is None:
            raise TransportError("telnet: no connection created")
        writer.write(text.encode(ENCODING, errors="replace") + b"\n")
        await asyncio.wait_for(writer.drain(), timeout=self._config.message_deadline)

    async def _skip_until(self, *needles: str) -> int:
        """Read until one of ``needles`` appears; return which one came first."""

        reader = self._stream_reader
        if reader is None:
            raise TransportError("telnet: no connection created")
        buffer = ""
        while True:
            chunk = await reader.read(1024)
            if not chunk:
                raise TransportError("telnet: unexpected initial handshake (connection closed)")
            buffer += strip_iac(chunk).decode(ENCODING, errors="replace")
            found = [(buffer.find(needle), index) for index, needle in enumerate(needles)]
            found = [item for item in found if item[0] != -1]
            if found:
                return min(found)[1]
