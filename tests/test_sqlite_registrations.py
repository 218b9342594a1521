from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

from adapters.sqlite_registrations import CONFIRMED, SQLiteRegistrations


def _store(tmp_path: Path) -> SQLiteRegistrations:
    store = SQLiteRegistrations(str(tmp_path / "registrations.db"))
    store.init_db()
    return store


def _insert(tmp_path: Path, discord_id: str, character: str, status: str, expires_in: timedelta) -> None:
    expires_at = datetime.now(timezone.utc) + expires_in
    with sqlite3.connect(str(tmp_path / "registrations.db")) as conn:
        conn.execute(
            "INSERT INTO registrations (discord_id, discord_name, character_name, status, code, expires_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (discord_id, f"user{discord_id}", character, status, "1234", expires_at.isoformat()),
        )


def _ids(tmp_path: Path) -> list[str]:
    with sqlite3.connect(str(tmp_path / "registrations.db")) as conn:
        rows = conn.execute("SELECT discord_id FROM registrations ORDER BY discord_id").fetchall()
    return [row[0] for row in rows]


def test_init_db_is_repeatable(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.init_db()
    assert store.character_name("42") == ""


def test_only_confirmed_entries_name_a_character(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _insert(tmp_path, "1", "Shin", "In Queue", timedelta(minutes=10))
    _insert(tmp_path, "2", "Xackery", CONFIRMED, timedelta(minutes=10))

    assert store.character_name("1") == ""
    assert store.character_name("2") == "Xackery"
    assert store.character_name("3") == ""


def test_cleanup_expired_keeps_confirmed(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _insert(tmp_path, "1", "Alpha", "In Queue", timedelta(seconds=-1))
    _insert(tmp_path, "2", "Beta", CONFIRMED, timedelta(seconds=-1))
    _insert(tmp_path, "3", "Gamma", "Waiting Reply", timedelta(minutes=10))

    assert store.cleanup_expired() == 1
    assert _ids(tmp_path) == ["2", "3"]
    assert store.character_name("2") == "Beta"
    assert store.cleanup_expired() == 0
