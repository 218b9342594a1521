from __future__ import annotations

import os
from pathlib import Path

from adapters.file_stores import GuildStore, UserStore


def test_missing_file_is_created_with_header(tmp_path: Path) -> None:
    path = tmp_path / "users.txt"
    store = UserStore(str(path))
    assert store.reload() == 0
    assert path.read_text().startswith("#")


def test_user_store_parses_entries(tmp_path: Path) -> None:
    path = tmp_path / "users.txt"
    path.write_text(
        "# header\n"
        "\n"
        "12345:Shin #my main\n"
        "abc:Bad\n"
        "no separator\n"
        "67890:Xackery\n"
    )
    store = UserStore(str(path))
    assert store.reload() == 2
    assert store.name("12345") == "Shin"
    assert store.name("67890") == "Xackery"
    assert store.name("abc") == ""


def test_duplicate_entries_keep_the_last(tmp_path: Path) -> None:
    path = tmp_path / "users.txt"
    path.write_text("1:First\n1:Second\n")
    store = UserStore(str(path))
    assert store.reload() == 1
    assert store.name("1") == "Second"


def test_guild_store_lookups(tmp_path: Path) -> None:
    path = tmp_path / "guilds.txt"
    path.write_text("7:555666 #raiders\n8:12\n")
    store = GuildStore(str(path))
    assert store.reload() == 1
    assert store.channel_id(7) == "555666"
    assert store.channel_id(8) == ""
    assert store.guild_id("555666") == 7
    assert store.guild_id("999") == 0

    store.set(9, "777888")
    assert store.guild_id("777888") == 9


def test_changed_follows_mtime(tmp_path: Path) -> None:
    path = tmp_path / "users.txt"
    path.write_text("1:Shin\n")
    store = UserStore(str(path))
    assert store.changed()
    store.reload()
    assert not store.changed()

    path.write_text("1:Shin\n2:Xackery\n")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    assert store.changed()
    store.reload()
    assert store.name("2") == "Xackery"


def test_set_is_written_through_to_disk(tmp_path: Path) -> None:
    path = tmp_path / "users.txt"
    path.write_text("1:Shin\n")
    store = UserStore(str(path))
    store.reload()

    store.set("2", "Xackery")
    assert store.name("2") == "Xackery"
    assert not store.changed()
    assert not (tmp_path / "users.txt.tmp").exists()

    fresh = UserStore(str(path))
    assert fresh.reload() == 2
    assert fresh.name("1") == "Shin"
    assert fresh.name("2") == "Xackery"

    guilds = GuildStore(str(tmp_path / "guilds.txt"))
    guilds.reload()
    guilds.set(7, "555666")
    reloaded = GuildStore(str(tmp_path / "guilds.txt"))
    reloaded.reload()
    assert reloaded.channel_id(7) == "555666"
