"""Pump-backed base class shared by every transport endpoint.

All public operations are sent to the endpoint's own pump, so the
connection state, config and subscriber list are only ever touched by one
handler at a time. Subclasses supply the transport: ``validate``,
``_open``, ``_shutdown``, ``_read_loop`` and ``_send``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, List, Optional, Set

from core.channels import OOC
from core.errors import BridgeError, NotConnectedError, TransportError
from core.lifecycle import ConnectionState
from core.models import ChatMessage
from core.ports import MessageCallback
from core.pump import DEFAULT_TIMEOUT, Pump

LOGGER = logging.getLogger(__name__)

SERVER_UP = "Server is now UP"
SERVER_DOWN = "Server is now DOWN"


@dataclass(frozen=True)
class Connect:
    pass


@dataclass(frozen=True)
class ConfigRead:
    pass


@dataclass(frozen=True)
class ConfigUpdate:
    config: Any


@dataclass(frozen=True)
class Close:
    announce: bool = True


@dataclass(frozen=True)
class SendMessage:
    message: ChatMessage


@dataclass(frozen=True)
class Subscribe:
    callback: MessageCallback


class BaseEndpoint:
    """Connection lifecycle, subscribers and pump plumbing for one transport."""

    # Handshakes (telnet login, Discord gateway) outlast a normal pump call.
    connect_timeout = 30.0

    def __init__(self, name: str, config: Any, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.name = name
        self._config = config
        self._state = ConnectionState.DISCONNECTED
        self._has_connected = False
        self._subscribers: List[MessageCallback] = []
        self._read_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._pump = Pump(name, timeout=timeout)
        self._pump.register(Connect, self._on_connect)
        self._pump.register(ConfigRead, self._on_config_read)
        self._pump.register(ConfigUpdate, self._on_config_update)
        self._pump.register(Close, self._on_close)
        self._pump.register(SendMessage, self._on_send_message)
        self._pump.register(Subscribe, self._on_subscribe)

    # -- public surface -------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def announce_status(self) -> bool:
        return False

    def start(self) -> None:
        """Start the endpoint's pump. Must run inside the event loop."""

        self._pump.start()

    async def shutdown(self) -> None:
        """Close the transport, then stop the pump."""

        await self.close()
        await self._pump.stop()
        for task in list(self._background):
            task.cancel()

    async def connect(self) -> None:
        await self._pump.call(Connect(), timeout=max(self.connect_timeout, self._pump.timeout))

    async def config_read(self) -> Any:
        return await self._pump.call(ConfigRead())

    async def config_update(self, config: Any) -> None:
        await self._pump.call(ConfigUpdate(config))

    async def close(self) -> None:
        """Close the connection. Never raises."""

        try:
            await self._pump.call(Close())
        except BridgeError as exc:
            LOGGER.warning("%s: failed to close (ignored): %s", self.name, exc)

    async def send_message(self, message: ChatMessage) -> None:
        await self._pump.call(SendMessage(message))

    async def subscribe(self, callback: MessageCallback) -> None:
        await self._pump.call(Subscribe(callback))

    # -- transport hooks --------------------------------------------------

    def validate(self, config: Any) -> None:
        """Raise ConfigError when ``config`` cannot be used to connect."""

    async def _open(self) -> None:
        raise NotImplementedError

    async def _shutdown(self) -> None:
        raise NotImplementedError

    async def _read_loop(self) -> None:
        raise NotImplementedError

    async def _send(self, message: ChatMessage) -> None:
        raise NotImplementedError

    # -- pump handlers --------------------------------------------------

    async def _on_connect(self, request: Connect) -> None:
        if self._state is not ConnectionState.DISCONNECTED:
            await self._on_close(Close(announce=False))

        self.validate(self._config)
        LOGGER.info("%s: connecting...", self.name)
        self._state = ConnectionState.CONNECTING
        try:
            await self._open()
            read_task = asyncio.get_running_loop().create_task(
                self._run_reader(), name=f"{self.name}:read"
            )
        except (BridgeError, asyncio.CancelledError):
            self._state = ConnectionState.DISCONNECTED
            await self._quiet_shutdown()
            raise
        except Exception as exc:
            self._state = ConnectionState.DISCONNECTED
            await self._quiet_shutdown()
            raise TransportError(f"{self.name}: connect failed: {exc}") from exc

        self._read_task = read_task
        self._state = ConnectionState.CONNECTED
        if self._has_connected and self.announce_status:
            self._announce(SERVER_UP)
        self._has_connected = True
        LOGGER.info("%s: connected successfully, listening for messages", self.name)

    async def _on_config_read(self, request: ConfigRead) -> Any:
        return self._config

    async def _on_config_update(self, request: ConfigUpdate) -> None:
        # Takes effect on the next connect.
        self._config = request.config

    async def _on_close(self, request: Close) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            LOGGER.debug("%s: already disconnected, skipping close", self.name)
            return
        was_connected = self._state is ConnectionState.CONNECTED
        self._state = ConnectionState.DISCONNECTED

        task = self._read_task
        self._read_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                LOGGER.debug("%s: read task ended with %s", self.name, exc)

        await self._quiet_shutdown()
        LOGGER.info("%s: disconnected", self.name)
        if request.announce and was_connected and self.announce_status:
            self._announce(SERVER_DOWN)

    async def _on_send_message(self, request: SendMessage) -> None:
        if not self.is_connected:
            raise NotConnectedError(self.name)
        try:
            await self._send(request.message)
        except BridgeError:
            raise
        except Exception as exc:
            raise TransportError(f"{self.name}: send failed: {exc}") from exc

    async def _on_subscribe(self, request: Subscribe) -> None:
        self._subscribers.append(request.callback)

    # -- helpers ----------------------------------------------------------

    async def _quiet_shutdown(self) -> None:
        try:
            await self._shutdown()
        except Exception as exc:
            LOGGER.warning("%s: close failed (ignored): %s", self.name, exc)

    async def _run_reader(self) -> None:
        try:
            await self._read_loop()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("%s: read failed: %s", self.name, exc)
        else:
            LOGGER.warning("%s: connection closed by remote", self.name)
        if self.is_connected:
            # Close through the pump; awaiting it here would cancel ourselves.
            self._spawn(self.close())

    async def _publish(self, message: ChatMessage) -> None:
        """Hand a parsed inbound message to every subscriber, in order."""

        if not self._subscribers:
            LOGGER.debug("%s: message, but no subscribers to notify, ignoring", self.name)
            return
        for callback in list(self._subscribers):
            try:
                await callback(message)
            except Exception as exc:
                # A bad route or subscriber must not take the read loop down.
                LOGGER.warning("[%s] subscriber failed: %s", self.name, exc)

    def _announce(self, text: str) -> None:
        message = ChatMessage(
            source_endpoint=self.name,
            author="Admin",
            channel_number=OOC,
            message=text,
        )
        # Called from pump handlers; subscribers may call back into this pump.
        self._spawn(self._publish(message))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
