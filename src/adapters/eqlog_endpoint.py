"""EverQuest client log endpoint (read only).

Tails the client's chat log from its current end and turns chat lines
such as ``[Mon Jan 01 10:00:00 2024] Shin says out of character, 'hi'``
into ChatMessages.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

import aiofiles

from adapters.endpoint import BaseEndpoint
from core import channels
from core.config import EQLogConfig
from core.errors import ConfigError, TransportError
from core.item_links import convert_links
from core.models import ChatMessage
from core.pump import DEFAULT_TIMEOUT
from core.sanitize import alphanumeric, sanitize

LOGGER = logging.getLogger(__name__)


def parse_log_line(
    line: str,
    item_url: str = "",
    convert_general_auction: bool = False,
) -> Optional[ChatMessage]:
    line = line.rstrip("\r\n")
    if len(line) < 3:
        return None
    found = channels.detect(line, channels.EQLOG_PATTERNS)
    if found is None:
        return None
    phrase, number = found

    phrase_at = line.find(f" {phrase}")
    if phrase_at == -1:
        return None
    author = line[:phrase_at]
    if "]" in author:
        author = author[author.index("]") + 1 :]
    author = alphanumeric(author).replace("_", " ")

    start = line.find("'", phrase_at) + 1
    end = line.rfind("'")
    if start == 0 or end < start:
        return None
    body = sanitize(convert_links(line[start:end], item_url))
    if not body.strip():
        LOGGER.debug("ignored (empty message): %r", line)
        return None

    if convert_general_auction and number == channels.GENERAL and ("WTS " in body or "WTB " in body):
        number = channels.AUCTION

    return ChatMessage(
        source_endpoint="eqlog",
        author=author,
        message=body,
        channel_number=number,
    )


class EQLogEndpoint(BaseEndpoint):
    def __init__(self, config: EQLogConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__("eqlog", config, timeout)
        self._handle = None

    def validate(self, config: EQLogConfig) -> None:
        if not config.path:
            raise ConfigError("eqlog: path must be set")
        if not os.path.isfile(config.path):
            raise ConfigError(f"eqlog: {config.path} does not exist")

    async def _open(self) -> None:
        config: EQLogConfig = self._config
        LOGGER.info("eqlog tailing %s", config.path)
        self._handle = await aiofiles.open(config.path, "r", encoding="utf-8", errors="replace")
        # Only new lines are relayed.
        await self._handle.seek(0, os.SEEK_END)

    async def _shutdown(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            await handle.close()

    async def _read_loop(self) -> None:
        config: EQLogConfig = self._config
        handle = self._handle
        if handle is None:
            return
        partial = ""
        while True:
            chunk = await handle.readline()
            if not chunk:
                position = await handle.tell()
                try:
                    size = os.path.getsize(config.path)
                except OSError as exc:
                    raise TransportError(f"eqlog: {config.path} is gone: {exc}") from exc
                if size < position:
                    LOGGER.info("eqlog %s was truncated, reading from start", config.path)
                    await handle.seek(0)
                    partial = ""
                await asyncio.sleep(config.poll_interval)
                continue

            partial += chunk
            if not partial.endswith("\n"):
                continue
            line, partial = partial, ""
            message = parse_log_line(
                line,
                item_url=config.item_url,
                convert_general_auction=config.convert_general_auction,
            )
            if message is None:
                continue
            await self._publish(message)

    async def _send(self, message: ChatMessage) -> None:
        raise TransportError("eqlog: sending is not supported")
