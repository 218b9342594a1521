from __future__ import annotations

import pytest

from core.errors import ConfigError
from core.models import ChatMessage
from core.route_engine import Route, Trigger, build_routes, match_routes, template_fields


class FakeGuilds:
    def __init__(self, channels: dict[int, str]) -> None:
        self._channels = channels

    def channel_id(self, guild_id: int) -> str:
        return self._channels.get(guild_id, "")

    def guild_id(self, channel_id: str) -> int:
        return 0


def _route(**overrides) -> dict:
    raw = {
        "enabled": True,
        "trigger": {"channel_id": "260"},
        "target": "discord",
        "channel_id": "111",
        "message_pattern": "{name}: {message}",
    }
    raw.update(overrides)
    return raw


def _ooc(text: str, author: str = "Shin") -> ChatMessage:
    return ChatMessage(source_endpoint="telnet", author=author, message=text, channel_number=260)


def test_channel_trigger_renders_template() -> None:
    routes = build_routes([_route()])
    dispatches = match_routes(_ooc("hello"), routes)
    assert len(dispatches) == 1
    assert dispatches[0].target == "discord"
    assert dispatches[0].channel_id == "111"
    assert dispatches[0].text == "Shin: hello"


def test_dispatch_order_follows_config_order() -> None:
    routes = build_routes(
        [
            _route(channel_id="1", message_pattern="first {message}"),
            _route(channel_id="2", message_pattern="second {message}"),
            _route(channel_id="3", message_pattern="third {message}"),
        ]
    )
    for _ in range(5):
        dispatches = match_routes(_ooc("x"), routes)
        assert [d.channel_id for d in dispatches] == ["1", "2", "3"]


def test_disabled_route_never_fires() -> None:
    routes = build_routes([_route(enabled=False), _route(channel_id="222")])
    dispatches = match_routes(_ooc("hello"), routes)
    assert [d.channel_id for d in dispatches] == ["222"]
    assert [d.route_index for d in dispatches] == [1]


def test_disabled_route_is_not_validated() -> None:
    routes = build_routes([_route(enabled=False, trigger={"regex": "("}, channel_id="")])
    assert routes[0].pattern is None


def test_channel_mismatch_discards() -> None:
    routes = build_routes([_route()])
    message = ChatMessage(source_endpoint="telnet", author="Shin", message="hi", channel_number=261)
    assert match_routes(message, routes) == []


def test_discord_channel_id_trigger() -> None:
    routes = build_routes([_route(trigger={"channel_id": "555"}, target="telnet", channel_id="ooc")])
    message = ChatMessage(source_endpoint="discord", author="Shin", message="hi", channel_id="555")
    other = ChatMessage(source_endpoint="discord", author="Shin", message="hi", channel_id="556")
    assert len(match_routes(message, routes)) == 1
    assert match_routes(other, routes) == []


def test_regex_named_groups_feed_template() -> None:
    routes = build_routes(
        [
            _route(
                trigger={"regex": r"(?P<name>\w+) tells the guild, '(?P<message>.*)'"},
                message_pattern="[guild] {name}: {message}",
            )
        ]
    )
    message = ChatMessage(source_endpoint="eqlog", message="Shin tells the guild, 'hail'")
    dispatches = match_routes(message, routes)
    assert dispatches[0].text == "[guild] Shin: hail"
    assert dispatches[0].author == "Shin"


def test_regex_indices_feed_template() -> None:
    routes = build_routes(
        [
            _route(
                trigger={"regex": r"(\w+) -> (.*)", "name_index": 1, "message_index": 2},
                message_pattern="{name} said {message}",
            )
        ]
    )
    dispatches = match_routes(ChatMessage(source_endpoint="nats", message="Shin -> hi"), routes)
    assert dispatches[0].text == "Shin said hi"


def test_regex_index_beyond_groups_skips_route() -> None:
    routes = build_routes(
        [
            _route(trigger={"regex": r"(\w+)", "message_index": 3}),
            _route(channel_id="222", trigger={"regex": r"\w+"}),
        ]
    )
    dispatches = match_routes(ChatMessage(source_endpoint="nats", message="hi"), routes)
    assert [d.channel_id for d in dispatches] == ["222"]


def test_regex_is_case_sensitive() -> None:
    routes = build_routes([_route(trigger={"regex": "WTS"})])
    assert match_routes(_ooc("wts sword"), routes) == []
    assert len(match_routes(_ooc("WTS sword"), routes)) == 1


def test_custom_numeric_trigger_binds_channel_number() -> None:
    routes = build_routes([_route(trigger={"custom": "260"})])
    assert len(match_routes(_ooc("hi"), routes)) == 1
    auction = ChatMessage(source_endpoint="nats", message="hi", channel_number=261)
    assert match_routes(auction, routes) == []


def test_custom_trigger_is_exclusive() -> None:
    # The regex would never match; custom alone decides.
    routes = build_routes([_route(trigger={"custom": "260", "regex": "never"})])
    assert len(match_routes(_ooc("hi"), routes)) == 1


def test_custom_discriminator_trigger() -> None:
    routes = build_routes([_route(trigger={"custom": "admin"}, message_pattern="ADMIN: {message}")])
    admin = ChatMessage(source_endpoint="nats", message="reboot", discriminator="admin")
    assert match_routes(admin, routes)[0].text == "ADMIN: reboot"
    assert match_routes(_ooc("reboot"), routes) == []


def test_guild_capture_resolves_channel() -> None:
    routes = build_routes([_route(trigger={"regex": r"guild (?P<guild>\d+): (?P<message>.*)"})])
    guilds = FakeGuilds({7: "777"})
    dispatches = match_routes(_ooc("guild 7: hi"), routes, guilds)
    assert dispatches[0].channel_id == "777"
    assert dispatches[0].text == "Shin: hi"


def test_guild_without_mapping_falls_back_to_route_channel() -> None:
    routes = build_routes([_route(trigger={"regex": r"guild (?P<guild>\d+): (?P<message>.*)"})])
    dispatches = match_routes(_ooc("guild 8: hi"), routes, FakeGuilds({}))
    assert dispatches[0].channel_id == "111"


def test_non_integer_guild_skips_route() -> None:
    routes = build_routes([_route(trigger={"regex": r"guild (?P<guild>\w+): (?P<message>.*)"})])
    assert match_routes(_ooc("guild abc: hi"), routes, FakeGuilds({})) == []


def test_template_failure_skips_only_that_route() -> None:
    routes = build_routes(
        [
            _route(message_pattern="{missing} {message}"),
            _route(channel_id="222"),
        ]
    )
    dispatches = match_routes(_ooc("hello"), routes)
    assert [d.channel_id for d in dispatches] == ["222"]


def test_template_type_error_skips_only_that_route() -> None:
    routes = build_routes(
        [
            _route(message_pattern="{channel_number[0]}"),
            _route(channel_id="222"),
        ]
    )
    dispatches = match_routes(_ooc("hello"), routes)
    assert [d.channel_id for d in dispatches] == ["222"]


def test_template_exposes_source_and_channel() -> None:
    routes = build_routes([_route(message_pattern="{source}/{channel_number}/{channel_id}: {message}")])
    assert match_routes(_ooc("hi"), routes)[0].text == "telnet/260/111: hi"


def test_uncompiled_bad_regex_is_skipped_at_match_time() -> None:
    route = Route(
        trigger=Trigger(regex="("),
        target="discord",
        channel_id="111",
        message_pattern="{message}",
    )
    assert match_routes(_ooc("hi"), [route]) == []


def test_build_rejects_invalid_routes() -> None:
    with pytest.raises(ConfigError, match="invalid channel id"):
        build_routes([_route(channel_id="")])
    with pytest.raises(ConfigError, match="target"):
        build_routes([_route(target="")])
    with pytest.raises(ConfigError, match="regex"):
        build_routes([_route(trigger={"regex": "("})])
    with pytest.raises(ConfigError, match="message_pattern"):
        build_routes([_route(message_pattern="{name")])
    with pytest.raises(ConfigError, match="trigger"):
        build_routes([_route(trigger={})])


def test_template_fields_lists_names() -> None:
    assert template_fields("{name} **OOC**: {message}") == ("name", "message")
    with pytest.raises(ValueError):
        template_fields("{0}")
