"""Game chat channel numbers and the phrases that identify them.

See https://eqemu.gitbook.io/server/categories/types/chat-channel-types for
the numeric channel ids used by the server.
"""

from __future__ import annotations

from typing import Optional

GUILD = 259
OOC = 260
AUCTION = 261
SHOUT = 262
GENERAL = 291
ADMIN = 1000
PEQ_EDITOR_SQL_LOG = 1001
BROADCAST = 1002

CHANNELS: dict[str, int] = {
    "guild": GUILD,
    "ooc": OOC,
    "auction": AUCTION,
    "shout": SHOUT,
    "general": GENERAL,
    "admin": ADMIN,
    "peqeditorsqllog": PEQ_EDITOR_SQL_LOG,
    "broadcast": BROADCAST,
}

# Telnet console phrases, checked in order. A list keeps detection
# deterministic when a line contains more than one phrase.
TELNET_PATTERNS: list[tuple[str, int]] = [
    ("says ooc,", OOC),
    ("auctions,", AUCTION),
    ("general,", GENERAL),
    ("BROADCASTS,", BROADCAST),
]

# EverQuest client log phrases, checked in order.
EQLOG_PATTERNS: list[tuple[str, int]] = [
    ("says out of character,", OOC),
    ("auctions,", AUCTION),
    ("shouts,", SHOUT),
    ("tells General:", GENERAL),
]


def to_number(name: str) -> int:
    """Return the channel number for a name, or 0 when unknown."""

    return CHANNELS.get(name.lower(), 0)


def to_name(number: int) -> str:
    """Return the channel name for a number.

    Custom chat channels above 5000 have no name and are rendered as their
    number; unknown low numbers return an empty string.
    """

    for name, value in CHANNELS.items():
        if value == number:
            return name
    if number > 5000:
        return str(number)
    return ""


def detect(line: str, patterns: list[tuple[str, int]]) -> Optional[tuple[str, int]]:
    """Return the first (phrase, channel) whose phrase occurs in ``line``."""

    for phrase, number in patterns:
        if phrase in line:
            return phrase, number
    return None
