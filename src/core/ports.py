"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for endpoint and lookup adapters so that
the manager can relay between any transports without knowing their types.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from core.models import ChatMessage

MessageCallback = Callable[[ChatMessage], Awaitable[Any]]


class EndpointPort(Protocol):
    """Capability every input/output transport satisfies."""

    name: str

    @property
    def is_connected(self) -> bool:
        ...

    async def connect(self) -> None:
        ...

    async def config_read(self) -> Any:
        ...

    async def config_update(self, config: Any) -> None:
        ...

    async def close(self) -> None:
        ...

    async def send_message(self, message: ChatMessage) -> None:
        ...

    async def subscribe(self, callback: MessageCallback) -> None:
        ...


class GuildLookupPort(Protocol):
    """Game guild id to chat channel id mapping."""

    def channel_id(self, guild_id: int) -> str:
        ...

    def guild_id(self, channel_id: str) -> int:
        ...


class UserLookupPort(Protocol):
    """Chat user id to in-game character name mapping."""

    def name(self, user_id: str) -> str:
        ...


class RegistrationPort(Protocol):
    """Registration queue operations needed by endpoints."""

    def character_name(self, discord_id: str) -> str:
        ...
