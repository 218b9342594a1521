"""SQLite registration store.

Read side of the Discord to character registration table. Rows are
written by the registration workflow; the relay only resolves confirmed
names and prunes requests whose code has expired. Implements the core
RegistrationPort.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

CONFIRMED = "Confirmed"


class SQLiteRegistrations:
    """Thin SQLite wrapper that satisfies the RegistrationPort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the registrations table if it does not exist."""

        with self._connect() as conn:
            # One row per Discord user; a new request replaces the old one.
            # expires_at is an ISO timestamp after which the code is void.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS registrations (
                    discord_id TEXT PRIMARY KEY,
                    discord_name TEXT NOT NULL,
                    character_name TEXT NOT NULL,
                    status TEXT NOT NULL,
                    channel_id TEXT,
                    message_id TEXT,
                    code TEXT,
                    expires_at TIMESTAMP
                )
                """
            )

    def character_name(self, discord_id: str) -> str:
        """Return the confirmed character for a Discord user, or ''."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT character_name FROM registrations WHERE discord_id = ? AND status = ?",
                (discord_id, CONFIRMED),
            ).fetchone()
        return str(row["character_name"]) if row else ""

    def cleanup_expired(self) -> int:
        """Delete unconfirmed requests past their timeout; return how many."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM registrations WHERE status != ? AND expires_at < ?",
                (CONFIRMED, now.isoformat()),
            )
            return cur.rowcount
