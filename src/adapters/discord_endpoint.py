"""Discord endpoint built on discord.py.

Inbound messages are attributed to the sender's in-game name; messages
from users with no known character are dropped. Outbound messages go to
the routed channel id.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import discord

from adapters.endpoint import BaseEndpoint
from adapters.outbound_formatting import INBOUND_LIMIT, clip, format_discord_message
from core.config import DiscordConfig
from core.errors import ConfigError, TransportError
from core.models import ChatMessage
from core.ports import GuildLookupPort, RegistrationPort, UserLookupPort
from core.pump import DEFAULT_TIMEOUT
from core.sanitize import sanitize

LOGGER = logging.getLogger(__name__)

IGN_ROLE_PREFIX = "IGN:"
AUTHORIZE_URL = "https://discordapp.com/oauth2/authorize?&client_id={client_id}&scope=bot&permissions=268504080"


def authorize_hint(client_id: str) -> str:
    if not client_id:
        return "set discord client_id to get an authorize link"
    return f"visit {AUTHORIZE_URL.format(client_id=client_id)} and authorize"


def ign_from_member(member: Any) -> str:
    """Return the in-game name from an ``IGN: Name`` role, else the nickname."""

    for role in getattr(member, "roles", None) or []:
        name = getattr(role, "name", "") or ""
        if IGN_ROLE_PREFIX in name:
            ign = name.split(IGN_ROLE_PREFIX, 1)[1].strip()
            if ign:
                return ign
    return getattr(member, "nick", None) or ""


class DiscordEndpoint(BaseEndpoint):
    def __init__(
        self,
        config: DiscordConfig,
        users: Optional[UserLookupPort] = None,
        registrations: Optional[RegistrationPort] = None,
        guilds: Optional[GuildLookupPort] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__("discord", config, timeout)
        self._users = users
        self._registrations = registrations
        self._guilds = guilds
        self._client: Optional[discord.Client] = None

    def validate(self, config: DiscordConfig) -> None:
        if not config.token:
            raise ConfigError("discord: bot_token must be set")
        if not config.server_id:
            raise ConfigError("discord: server_id must be set")

    async def _open(self) -> None:
        config: DiscordConfig = self._config
        LOGGER.info("discord connecting to server_id %s...", config.server_id)

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        client = discord.Client(intents=intents)

        async def on_ready() -> None:
            LOGGER.info("discord logged in as %s", client.user)

        async def on_message(message: discord.Message) -> None:
            await self._on_discord_message(message)

        client.event(on_ready)
        client.event(on_message)
        self._client = client
        try:
            await client.login(config.token)
        except discord.LoginFailure as exc:
            raise ConfigError(f"discord: login failed: {exc}") from exc

    async def _shutdown(self) -> None:
        client = self._client
        self._client = None
        if client is not None and not client.is_closed():
            await client.close()

    async def _read_loop(self) -> None:
        if self._client is None:
            return
        await self._client.connect(reconnect=True)

    def resolve_name(self, member: Any) -> str:
        """Map a Discord author to a character name; empty when unknown."""

        user_id = str(member.id)
        if self._users is not None:
            name = self._users.name(user_id)
            if name:
                return name
        if self._registrations is not None:
            name = self._registrations.character_name(user_id)
            if name:
                return name
        return ign_from_member(member)

    async def _on_discord_message(self, message: Any) -> None:
        config: DiscordConfig = self._config
        client = self._client
        if client is not None and client.user is not None and message.author.id == client.user.id:
            LOGGER.debug("[discord] bot %s ignored", message.author.id)
            return
        if message.guild is None or str(message.guild.id) != config.server_id:
            LOGGER.debug("[discord] message outside server %s ignored", config.server_id)
            return

        text = sanitize(clip(message.clean_content, INBOUND_LIMIT))
        if not text:
            LOGGER.debug("[discord] message after sanitize too small, ignoring")
            return

        ign = sanitize(self.resolve_name(message.author))
        if not ign:
            LOGGER.warning("[discord] ign not found for %s, discarding", message.author.id)
            return

        channel_id = str(message.channel.id)
        guild_id = self._guilds.guild_id(channel_id) if self._guilds is not None else 0
        await self._publish(
            ChatMessage(
                source_endpoint="discord",
                author=ign,
                message=text,
                channel_id=channel_id,
                guild_id=guild_id or None,
            )
        )

    async def _send(self, message: ChatMessage) -> None:
        client = self._client
        if client is None:
            raise TransportError("discord: no connection created")
        if not message.channel_id.isdigit():
            raise TransportError(f"discord: invalid channel id {message.channel_id!r}")
        channel_id = int(message.channel_id)
        try:
            channel = client.get_channel(channel_id) or await client.fetch_channel(channel_id)
            await channel.send(format_discord_message(message))
        except discord.Forbidden as exc:
            config: DiscordConfig = self._config
            raise TransportError(
                f"discord: bot is not allowed in channel {channel_id}: "
                f"{authorize_hint(config.client_id)}"
            ) from exc
