"""Item link decoding (core domain).

The game embeds item references in chat as a token wrapped in ``\\x12``
sentinels: a 6 character hex item id, fixed-width padding whose length
depends on the client generation, then the readable item name.
"""

from __future__ import annotations

import re

SENTINEL = "\x12"

# Alternation order matters: the newer 50 character padding is tried before
# the legacy 39 character one for every token.
_ITEM_LINK = re.compile(
    r"\x12(?P<id>[0-9A-Z]{6})(?:[0-9A-Z]{50}|[0-9A-Z]{39})(?P<name>[^\x12]+)\x12"
)


def parse_item_id(raw_id: str) -> int:
    """Return the item id encoded in ``raw_id``, or 0 when it is not hex."""

    try:
        return int(raw_id, 16)
    except ValueError:
        return 0


def render_item(item_id: int, name: str, item_url: str) -> str:
    if item_id > 0 and item_url:
        return f"{item_url}{item_id} ({name})"
    return f"*{name}*"


def convert_links(text: str, item_url: str = "") -> str:
    """Rewrite every item link token in ``text`` as readable text.

    Tokens are found in one left-to-right pass, so a message with several
    links or a stray trailing sentinel cannot loop. Text without a complete
    token is returned untouched; otherwise the result is whitespace trimmed
    because tokens usually sit at the start or end of a console line.
    """

    if SENTINEL not in text:
        return text

    def _replace(match: re.Match) -> str:
        return render_item(parse_item_id(match.group("id")), match.group("name"), item_url)

    converted, count = _ITEM_LINK.subn(_replace, text)
    if not count:
        return text
    return converted.strip()
