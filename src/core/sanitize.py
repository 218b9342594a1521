"""Text sanitizing helpers (core domain)."""

from __future__ import annotations

import re

_NON_ASCII = re.compile(r"[^\x00-\x7F]+")
_NON_WORD = re.compile(r"[^a-zA-Z0-9_]+")


def sanitize(text: str) -> str:
    """Escape ``%`` and strip non-ASCII characters.

    The game server treats ``%`` as a format directive, so it is replaced
    with ``&PCT;`` before any text reaches a telnet or bus command.
    """

    text = text.replace("%", "&PCT;")
    return _NON_ASCII.sub("", text)


def alphanumeric(text: str) -> str:
    """Keep only letters, digits and underscores."""

    return _NON_WORD.sub("", text)
