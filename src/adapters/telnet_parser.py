"""Parse EverQuest telnet console lines into chat messages.

The console echoes every world chat line with prompt noise (``user>``),
backspaces and, depending on the server version, a different amount of
trailing padding. Everything here is pure so it can be tested without a
socket.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from core.channels import AUCTION, GENERAL, OOC, TELNET_PATTERNS, detect
from core.item_links import convert_links
from core.models import ChatMessage
from core.sanitize import alphanumeric, sanitize

LOGGER = logging.getLogger(__name__)

USERNAME_PROMPT = "Username:"
PASSWORD_PROMPT = "Password:"
LOCAL_ADMIN_BANNER = "Connection established from localhost, assuming admin"

# Telnet commands start with IAC (255): a negotiation verb plus option, a
# bare command, or a doubled IAC standing for a literal 0xff byte.
_IAC = re.compile(rb"\xff(?:[\xfb-\xfe].|[\xf0-\xfa]|(\xff))", re.DOTALL)


def strip_iac(data: bytes) -> bytes:
    """Drop telnet negotiation bytes from a raw console chunk."""

    return _IAC.sub(lambda match: b"\xff" if match.group(1) else b"", data)


def parse_line(
    line: str,
    item_url: str = "",
    legacy: bool = False,
    convert_ooc_auction: bool = False,
) -> Optional[ChatMessage]:
    """Return a ChatMessage for a world chat line, or None to ignore it.

    ``line`` is one raw console line including its line terminator. Legacy
    (pre 0.8.0) servers pad lines with one extra byte.
    """

    if len(line) < 3:
        return None

    found = detect(line, TELNET_PATTERNS)
    if found is None:
        LOGGER.debug("ignored (unknown channel msg): %r", line)
        return None
    pattern, channel_number = found

    text = line
    # Prompt clearing: "user>" in front of the author.
    prompt = text.find(">")
    if prompt != -1 and prompt < text.find(" "):
        text = text[prompt + 1 :]
    # A doubled prompt sometimes appears between author and pattern.
    prompt = text.find(">")
    if prompt != -1 and prompt < text.find(pattern):
        text = text[prompt + 1 :]
    text = text.replace("\b", "")

    if text.startswith("*"):
        LOGGER.debug("ignored (* = echo back): %r", line)
        return None

    author_end = text.find(f" {pattern}")
    if author_end == -1:
        return None
    author = text[:author_end].replace(">", "").replace(" ", "")
    author = alphanumeric(author).replace("_", " ")

    pad_offset = 3 if legacy else 2
    start = text.find(pattern) + len(pattern) + 2
    end = len(text) - pad_offset
    if end < start:
        LOGGER.debug("ignored (truncated line): %r", line)
        return None
    body = text[start:end]

    if channel_number == GENERAL:
        marker = body.find("[#General ")
        if marker > 0:
            body = body[marker + len("[#General ") :]

    body = sanitize(convert_links(body, item_url).replace("\n", ""))
    if not body.strip():
        LOGGER.debug("ignored (empty message): %r", line)
        return None

    if convert_ooc_auction and channel_number == OOC and ("WTS " in body or "WTB " in body):
        channel_number = AUCTION

    return ChatMessage(
        source_endpoint="telnet",
        author=author,
        message=body,
        channel_number=channel_number,
    )
