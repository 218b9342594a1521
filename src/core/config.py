"""Core configuration dataclasses.

We keep config file parsing outside the core, but these dataclasses define
the shape the core expects so adapters and the app layer can build safely.
``build_config`` turns the raw JSON dict into these frozen objects and
fails fast on anything that would otherwise surface at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Mapping, Optional

from core.errors import ConfigError
from core.lifecycle import DEFAULT_RETRY, MIN_RETRY
from core.pump import DEFAULT_TIMEOUT
from core.route_engine import Route, build_routes

DEFAULT_ITEM_URL = "http://everquest.allakhazam.com/db/item.html?item="

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: Any, default: float) -> float:
    """Parse ``10``, ``"10s"``, ``"1m"`` or ``"500ms"`` into seconds."""

    if value is None or value == "":
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _DURATION.match(str(value))
    if not match:
        raise ConfigError(f"invalid duration: {value!r}")
    return float(match.group(1)) * _UNITS[match.group(2)]


@dataclass(frozen=True)
class TelnetConfig:
    enabled: bool = False
    host: str = "127.0.0.1:23"
    username: str = ""
    password: str = ""
    item_url: str = DEFAULT_ITEM_URL
    # Servers older than 0.8.0 pad console lines differently.
    legacy: bool = False
    announce_server_status: bool = False
    convert_ooc_auction: bool = False
    message_deadline: float = 10.0


@dataclass(frozen=True)
class NatsConfig:
    enabled: bool = False
    host: str = "127.0.0.1:4222"
    item_url: str = DEFAULT_ITEM_URL
    convert_ooc_auction: bool = False


@dataclass(frozen=True)
class DiscordConfig:
    enabled: bool = False
    token: str = ""
    server_id: str = ""
    client_id: str = ""


@dataclass(frozen=True)
class EQLogConfig:
    enabled: bool = False
    path: str = ""
    item_url: str = DEFAULT_ITEM_URL
    convert_general_auction: bool = False
    poll_interval: float = 0.5


@dataclass(frozen=True)
class BridgeConfig:
    """Everything the runtime needs, validated and immutable."""

    debug: bool = False
    keep_alive: bool = True
    keep_alive_retry: float = DEFAULT_RETRY
    pump_timeout: float = DEFAULT_TIMEOUT
    users_database: str = "users.txt"
    guilds_database: str = "guilds.txt"
    registrations_database: str = "registrations.db"
    telnet: TelnetConfig = field(default_factory=TelnetConfig)
    nats: NatsConfig = field(default_factory=NatsConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    eqlog: EQLogConfig = field(default_factory=EQLogConfig)
    routes: Mapping[str, tuple[Route, ...]] = field(default_factory=dict)
    logging: Mapping[str, Any] = field(default_factory=dict)

    def enabled_endpoints(self) -> list[str]:
        sections = {
            "telnet": self.telnet,
            "nats": self.nats,
            "discord": self.discord,
            "eqlog": self.eqlog,
        }
        return [name for name, section in sections.items() if section.enabled]


ENDPOINT_SECTIONS = ("telnet", "nats", "discord", "eqlog")


def _section(raw: Mapping[str, Any], name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name}: section must be an object")
    return value


def _build_routes(name: str, section: dict) -> tuple[Route, ...]:
    if not section.get("enabled", False):
        return ()
    try:
        return tuple(build_routes(section.get("routes", []) or []))
    except ConfigError as exc:
        raise ConfigError(f"{name}: {exc}") from exc


def build_config(raw: Mapping[str, Any]) -> BridgeConfig:
    """Validate a raw config mapping and return a BridgeConfig."""

    telnet_raw = _section(raw, "telnet")
    nats_raw = _section(raw, "nats")
    discord_raw = _section(raw, "discord")
    eqlog_raw = _section(raw, "eqlog")

    telnet = TelnetConfig(
        enabled=bool(telnet_raw.get("enabled", False)),
        host=str(telnet_raw.get("host", "") or "127.0.0.1:23"),
        username=str(telnet_raw.get("username", "") or ""),
        password=str(telnet_raw.get("password", "") or ""),
        item_url=str(telnet_raw.get("item_url", DEFAULT_ITEM_URL) or ""),
        legacy=bool(telnet_raw.get("legacy", False)),
        announce_server_status=bool(telnet_raw.get("announce_server_status", False)),
        convert_ooc_auction=bool(telnet_raw.get("convert_ooc_auction", False)),
        # Anything under 10s drops slow console lines.
        message_deadline=max(parse_duration(telnet_raw.get("message_deadline"), 10.0), 10.0),
    )
    nats = NatsConfig(
        enabled=bool(nats_raw.get("enabled", False)),
        host=str(nats_raw.get("host", "") or "127.0.0.1:4222"),
        item_url=str(nats_raw.get("item_url", DEFAULT_ITEM_URL) or ""),
        convert_ooc_auction=bool(nats_raw.get("convert_ooc_auction", False)),
    )
    discord = DiscordConfig(
        enabled=bool(discord_raw.get("enabled", False)),
        token=str(discord_raw.get("bot_token", "") or ""),
        server_id=str(discord_raw.get("server_id", "") or ""),
        client_id=str(discord_raw.get("client_id", "") or ""),
    )
    eqlog = EQLogConfig(
        enabled=bool(eqlog_raw.get("enabled", False)),
        path=str(eqlog_raw.get("path", "") or ""),
        item_url=str(eqlog_raw.get("item_url", DEFAULT_ITEM_URL) or ""),
        convert_general_auction=bool(eqlog_raw.get("convert_general_auction", False)),
        poll_interval=parse_duration(eqlog_raw.get("poll_interval"), 0.5),
    )

    routes = {
        "telnet": _build_routes("telnet", telnet_raw),
        "nats": _build_routes("nats", nats_raw),
        "discord": _build_routes("discord", discord_raw),
        "eqlog": _build_routes("eqlog", eqlog_raw),
    }

    keep_alive_retry = parse_duration(raw.get("keep_alive_retry"), DEFAULT_RETRY)
    if keep_alive_retry < MIN_RETRY:
        keep_alive_retry = MIN_RETRY

    pump_timeout = parse_duration(raw.get("pump_timeout"), DEFAULT_TIMEOUT)
    if pump_timeout <= 0:
        raise ConfigError("pump_timeout must be greater than 0")

    config = BridgeConfig(
        debug=bool(raw.get("debug", False)),
        keep_alive=bool(raw.get("keep_alive", True)),
        keep_alive_retry=keep_alive_retry,
        pump_timeout=pump_timeout,
        users_database=str(raw.get("users_database", "") or "users.txt"),
        guilds_database=str(raw.get("guilds_database", "") or "guilds.txt"),
        registrations_database=str(raw.get("registrations_database", "") or "registrations.db"),
        telnet=telnet,
        nats=nats,
        discord=discord,
        eqlog=eqlog,
        routes=routes,
        logging=dict(raw.get("logging", {}) or {}),
    )
    if not config.enabled_endpoints():
        raise ConfigError("all endpoints are disabled, please enable one")
    return config


def route_summary(config: BridgeConfig) -> list[str]:
    """Human readable one-liners used by ``eqrelay check``."""

    lines: list[str] = []
    for source in ENDPOINT_SECTIONS:
        for index, route in enumerate(config.routes.get(source, ())):
            state = "on" if route.enabled else "off"
            trigger = route.trigger
            condition: Optional[str] = (
                f"custom={trigger.custom}"
                if trigger.custom
                else ", ".join(
                    part
                    for part in (
                        f"channel_id={trigger.channel_id}" if trigger.channel_id else "",
                        f"regex={trigger.regex}" if trigger.regex else "",
                    )
                    if part
                )
            )
            lines.append(
                f"{source}[{index}] ({state}) {condition} -> {route.target}:{route.channel_id}"
                f" fields={','.join(route.template_fields) or '-'}"
            )
    return lines
