"""Plain-text lookup stores: Discord users and guild channels.

Both files hold one ``key:value #comment`` entry per line and may be edited
by hand while the relay runs; ``watch`` picks up changes by polling the
file's mtime.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from typing import Generic, Optional, TypeVar

LOGGER = logging.getLogger(__name__)

K = TypeVar("K")


class LineStore(Generic[K]):
    """A ``key:value`` file loaded into a dict that is swapped whole on reload."""

    header = ""
    min_value_length = 1

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._entries: dict[K, str] = {}
        self._mtime: Optional[float] = None

    def parse_key(self, raw: str) -> K:
        raise NotImplementedError

    def reload(self) -> int:
        """Re-read the file, creating it with a header when missing."""

        if not os.path.exists(self.path):
            with open(self.path, "w", encoding="utf-8") as handle:
                handle.write(self.header)
            LOGGER.info("created %s", self.path)

        with open(self.path, "r", encoding="utf-8") as handle:
            lines = handle.read().splitlines()

        entries: dict[K, str] = {}
        for line_number, line in enumerate(lines, start=1):
            if not line.strip() or line.lstrip().startswith("#"):
                continue
            separator = line.find(":")
            if separator < 1:
                LOGGER.warning("%s:%d no : exists", self.path, line_number)
                continue
            try:
                key = self.parse_key(line[:separator].strip())
            except ValueError:
                LOGGER.warning("%s:%d invalid id %r", self.path, line_number, line[:separator])
                continue
            value = line[separator + 1 :]
            comment = value.find("#")
            if comment > 0:
                value = value[:comment]
            value = value.strip()
            if len(value) < self.min_value_length:
                LOGGER.warning("%s:%d value too short", self.path, line_number)
                continue
            if key in entries:
                LOGGER.warning("%s:%d duplicate entry for %s", self.path, line_number, key)
            entries[key] = value

        with self._lock:
            self._entries = entries
        self._mtime = os.path.getmtime(self.path)
        LOGGER.debug("loaded %d entries from %s", len(entries), self.path)
        return len(entries)

    def changed(self) -> bool:
        try:
            return os.path.getmtime(self.path) != self._mtime
        except OSError:
            return False

    async def watch(self, interval: float = 5.0) -> None:
        """Reload whenever the file changes. Runs until cancelled."""

        while True:
            await asyncio.sleep(interval)
            if not self.changed():
                continue
            LOGGER.debug("%s modified, reloading", self.path)
            try:
                self.reload()
            except OSError as exc:
                LOGGER.warning("failed to reload %s: %s", self.path, exc)

    def _get(self, key: K) -> str:
        with self._lock:
            return self._entries.get(key, "")

    def _set(self, key: K, value: str) -> None:
        """Store one entry and rewrite the file so it survives a reload."""

        with self._lock:
            entries = dict(self._entries)
            entries[key] = value
            scratch = f"{self.path}.tmp"
            with open(scratch, "w", encoding="utf-8") as handle:
                handle.write(self.header)
                for entry_key, entry_value in entries.items():
                    handle.write(f"{entry_key}:{entry_value}\n")
            os.replace(scratch, self.path)
            self._entries = entries
            self._mtime = os.path.getmtime(self.path)
        LOGGER.debug("saved %s to %s", key, self.path)


class UserStore(LineStore[str]):
    """Discord user id to in-game character name."""

    header = "# discord_id:character_name #optional comment\n"

    def parse_key(self, raw: str) -> str:
        if not raw.isdigit():
            raise ValueError(raw)
        return raw

    def name(self, user_id: str) -> str:
        return self._get(user_id)

    def set(self, user_id: str, name: str) -> None:
        self._set(user_id, name)


class GuildStore(LineStore[int]):
    """Game guild id to Discord channel id."""

    header = "# guild_id:discord_channel_id #optional comment\n"
    min_value_length = 3

    def parse_key(self, raw: str) -> int:
        return int(raw)

    def channel_id(self, guild_id: int) -> str:
        return self._get(guild_id)

    def guild_id(self, channel_id: str) -> int:
        with self._lock:
            entries = self._entries
        for guild_id, value in entries.items():
            if value == channel_id:
                return guild_id
        return 0

    def set(self, guild_id: int, channel_id: str) -> None:
        self._set(guild_id, channel_id)
