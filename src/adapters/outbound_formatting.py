"""Shared outbound formatting helpers.

Routes render only the message body; each destination turns the routed
ChatMessage into its own wire form here, so every adapter encodes the same
way regardless of which source the message came from.
"""

from __future__ import annotations

import json

from core import channels
from core.models import ChatMessage
from core.sanitize import sanitize

DISCORD_LIMIT = 2000
INBOUND_LIMIT = 4000


def clip(text: str, limit: int) -> str:
    """Trim ``text`` to at most ``limit`` characters."""

    if len(text) <= limit:
        return text
    return text[:limit]


def _single_line(text: str) -> str:
    # A newline would end the console command and start another one.
    return text.replace("\r", " ").replace("\n", " ")


def resolve_channel_number(message: ChatMessage) -> int:
    """Pick the game channel a routed message should be emitted on.

    ``channel_id`` may carry a channel name ("ooc") or number ("260"); it
    falls back to the source channel number, then to OOC.
    """

    channel_id = message.channel_id.strip()
    if channel_id.isdigit():
        return int(channel_id)
    if channel_id:
        number = channels.to_number(channel_id)
        if number:
            return number
    if message.channel_number:
        return message.channel_number
    return channels.OOC


def format_telnet_command(message: ChatMessage) -> str:
    """Return the console command that relays ``message`` into the game."""

    author = _single_line(sanitize(message.author))
    text = _single_line(sanitize(message.message))
    if message.guild_id:
        return f"guildsay {author} {message.guild_id} {text}"

    number = resolve_channel_number(message)
    action = "auctions" if number == channels.AUCTION else "says"
    return f"emote world {number} {author} {action} from {message.source_endpoint}, '{text}'"


def format_discord_message(message: ChatMessage) -> str:
    """Return the Discord body for ``message``, within Discord's size limit."""

    return clip(message.message, DISCORD_LIMIT)


def format_nats_payload(message: ChatMessage) -> bytes:
    """Encode ``message`` as the JSON channel message the world server reads."""

    number = resolve_channel_number(message)
    payload = {
        "from": message.author,
        "message": sanitize(message.message),
        "chan_num": number,
        "type": number,
        "is_emote": True,
        "guilddbid": message.guild_id or 0,
    }
    return json.dumps(payload).encode("utf-8")
