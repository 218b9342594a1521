from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from adapters.eqlog_endpoint import EQLogEndpoint, parse_log_line
from core.channels import AUCTION, GENERAL, OOC, SHOUT
from core.config import EQLogConfig
from core.errors import ConfigError, TransportError
from core.models import ChatMessage

STAMP = "[Mon Jan 01 10:00:00 2024]"


def test_out_of_character_line() -> None:
    message = parse_log_line(f"{STAMP} Shin says out of character, 'hello there'\r\n")
    assert message is not None
    assert message.source_endpoint == "eqlog"
    assert message.author == "Shin"
    assert message.message == "hello there"
    assert message.channel_number == OOC


def test_other_channels() -> None:
    assert parse_log_line(f"{STAMP} Shin shouts, 'help'").channel_number == SHOUT
    assert parse_log_line(f"{STAMP} Shin auctions, 'WTS Cap'").channel_number == AUCTION
    general = parse_log_line(f"{STAMP} Shin tells General:1, 'anyone around?'")
    assert general.channel_number == GENERAL
    assert general.message == "anyone around?"


def test_quotes_inside_body_are_kept() -> None:
    message = parse_log_line(f"{STAMP} Shin says out of character, 'it's fine'")
    assert message.message == "it's fine"


def test_unrelated_lines_are_ignored() -> None:
    assert parse_log_line(f"{STAMP} You have entered Greater Faydark.") is None
    assert parse_log_line("") is None
    assert parse_log_line(f"{STAMP} Shin shouts, no quotes") is None


def test_body_is_sanitized_and_empty_bodies_dropped() -> None:
    message = parse_log_line(f"{STAMP} Shin says out of character, '100% off café'")
    assert message.message == "100&PCT; off caf"
    assert parse_log_line(f"{STAMP} Shin says out of character, ''") is None
    assert parse_log_line(f"{STAMP} Shin says out of character, '   '") is None


def test_general_trade_converted_to_auction_when_enabled() -> None:
    line = f"{STAMP} Shin tells General:1, 'WTB Cap'"
    assert parse_log_line(line).channel_number == GENERAL
    assert parse_log_line(line, convert_general_auction=True).channel_number == AUCTION


def test_validate_requires_existing_file(tmp_path: Path) -> None:
    endpoint = EQLogEndpoint(EQLogConfig(enabled=True, path=str(tmp_path / "missing.txt")))
    with pytest.raises(ConfigError):
        endpoint.validate(endpoint._config)
    with pytest.raises(ConfigError):
        endpoint.validate(EQLogConfig(enabled=True))


def test_tails_only_new_lines(tmp_path: Path) -> None:
    log = tmp_path / "eqlog_Shin_test.txt"
    log.write_text(f"{STAMP} Old says out of character, 'before start'\n")

    async def scenario() -> list[ChatMessage]:
        endpoint = EQLogEndpoint(
            EQLogConfig(enabled=True, path=str(log), item_url="", poll_interval=0.01)
        )
        received: list[ChatMessage] = []

        async def collect(message: ChatMessage) -> None:
            received.append(message)

        endpoint.start()
        try:
            await endpoint.subscribe(collect)
            await endpoint.connect()
            with log.open("a") as handle:
                handle.write(f"{STAMP} Shin says out of character, 'first'\n")
                handle.write(f"{STAMP} You feel better.\n")
                handle.flush()
                handle.write(f"{STAMP} Shin shouts, 'sec")
                handle.flush()
                await asyncio.sleep(0.05)
                handle.write("ond'\n")
            for _ in range(100):
                if len(received) == 2:
                    break
                await asyncio.sleep(0.01)

            with pytest.raises(TransportError, match="not supported"):
                await endpoint.send_message(received[0])
        finally:
            await endpoint.shutdown()
        return received

    received = asyncio.run(scenario())
    assert [(m.author, m.message) for m in received] == [("Shin", "first"), ("Shin", "second")]
