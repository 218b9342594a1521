"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any transport-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChatMessage:
    """A normalized chat event produced by an endpoint's read loop."""

    source_endpoint: str
    message: str
    author: str = ""
    channel_id: str = ""
    channel_number: int = 0
    destination_endpoint: str = ""
    # Tag for non-chat traffic (e.g. "admin" broadcasts) matched by custom triggers.
    discriminator: Optional[str] = None
    guild_id: Optional[int] = None


@dataclass(frozen=True)
class Dispatch:
    """One fired route: rendered text plus destination addressing."""

    route_index: int
    target: str
    channel_id: str
    text: str
    author: str = ""
    channel_number: int = 0
    guild_id: str = ""
