"""Route compilation, matching and template rendering (core domain)."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from string import Formatter
from typing import Any, Iterable, List, Optional

from core.errors import ConfigError
from core.models import ChatMessage, Dispatch
from core.ports import GuildLookupPort

LOGGER = logging.getLogger(__name__)

_FORMATTER = Formatter()


@dataclass(frozen=True)
class Trigger:
    """Condition that makes a route fire."""

    channel_id: str = ""
    regex: str = ""
    custom: str = ""
    name_index: Optional[int] = None
    message_index: Optional[int] = None
    guild_index: Optional[int] = None


@dataclass(frozen=True)
class Route:
    """Compiled route used by the manager."""

    trigger: Trigger
    target: str
    channel_id: str
    message_pattern: str
    enabled: bool = True
    guild_id: str = ""
    pattern: Optional[re.Pattern] = field(default=None, compare=False, repr=False)
    template_fields: tuple[str, ...] = field(default=(), compare=False, repr=False)


def template_fields(message_pattern: str) -> tuple[str, ...]:
    """Return the top-level field names a template references.

    Raises ValueError for malformed templates (unbalanced braces, bad
    conversions) so callers can fail at load time.
    """

    names: list[str] = []
    for _, field_name, _, _ in _FORMATTER.parse(message_pattern):
        if field_name is None:
            continue
        root = re.split(r"[.\[]", field_name, maxsplit=1)[0]
        if not root or root.isdigit():
            raise ValueError(f"positional field {{{field_name}}} is not supported")
        names.append(root)
    return tuple(names)


def _optional_index(raw: dict, key: str) -> Optional[int]:
    value = raw.get(key)
    if value is None or value == "":
        return None
    return int(value)


def build_trigger(raw: dict) -> Trigger:
    return Trigger(
        channel_id=str(raw.get("channel_id", "") or ""),
        regex=str(raw.get("regex", "") or ""),
        custom=str(raw.get("custom", "") or ""),
        name_index=_optional_index(raw, "name_index"),
        message_index=_optional_index(raw, "message_index"),
        guild_index=_optional_index(raw, "guild_index"),
    )


def build_routes(routes_config: Iterable[dict]) -> List[Route]:
    """Normalize route configs, compile regexes and validate templates.

    Configuration order is preserved because it decides dispatch order.
    Disabled routes are kept (so indices in logs match the file) but are
    not compiled.
    """

    compiled: List[Route] = []
    for index, raw in enumerate(routes_config):
        enabled = bool(raw.get("enabled", True))
        try:
            trigger = build_trigger(raw.get("trigger", {}) or {})
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"route {index}: invalid trigger index: {exc}") from exc

        route = Route(
            trigger=trigger,
            target=str(raw.get("target", "") or ""),
            channel_id=str(raw.get("channel_id", "") or ""),
            guild_id=str(raw.get("guild_id", "") or ""),
            message_pattern=str(raw.get("message_pattern", "{message}")),
            enabled=enabled,
        )
        if enabled:
            route = load_route(route, index)
        compiled.append(route)
    return compiled


def load_route(route: Route, index: int = 0) -> Route:
    """Validate a route and return a copy with its handles populated."""

    trigger = route.trigger
    if not route.target:
        raise ConfigError(f"route {index}: target is required")
    if not route.channel_id:
        raise ConfigError(f"route {index}: invalid channel id")
    if not (trigger.channel_id or trigger.regex or trigger.custom):
        raise ConfigError(f"route {index}: trigger needs channel_id, regex or custom")

    try:
        fields = template_fields(route.message_pattern)
    except ValueError as exc:
        raise ConfigError(f"route {index}: failed to parse message_pattern: {exc}") from exc

    pattern = None
    if trigger.regex and not trigger.custom:
        try:
            pattern = re.compile(trigger.regex)
        except re.error as exc:
            raise ConfigError(f"route {index}: failed to compile regex {trigger.regex!r}: {exc}") from exc

    return Route(
        trigger=trigger,
        target=route.target,
        channel_id=route.channel_id,
        message_pattern=route.message_pattern,
        enabled=route.enabled,
        guild_id=route.guild_id,
        pattern=pattern,
        template_fields=fields,
    )


def _custom_fires(custom: str, message: ChatMessage) -> bool:
    # A numeric custom trigger binds a bus channel number; anything else is
    # a discriminator tag such as "admin".
    if custom.lstrip("-").isdigit():
        return message.discriminator is None and message.channel_number == int(custom)
    return message.discriminator == custom


def _channel_fires(channel_id: str, message: ChatMessage) -> bool:
    # Game-side sources carry only a channel number.
    if message.channel_id:
        return message.channel_id == channel_id
    return channel_id == str(message.channel_number)


def _group(match: re.Match, index: int) -> Optional[str]:
    if index > (match.re.groups or 0):
        return None
    return match.group(index) or ""


def _resolve_channel(
    route: Route, index: int, guild_value: str, guild_lookup: Optional[GuildLookupPort]
) -> Optional[str]:
    try:
        guild_id = int(guild_value)
    except ValueError:
        LOGGER.warning("Route %s: guild capture %r is not an integer", index, guild_value)
        return None
    channel_id = guild_lookup.channel_id(guild_id) if guild_lookup is not None else ""
    if not channel_id:
        LOGGER.debug(
            "Route %s: guild %s has no channel mapping, falling back to %s",
            index,
            guild_id,
            route.channel_id,
        )
        return route.channel_id
    return channel_id


def _render(route: Route, context: dict[str, Any]) -> str:
    return route.message_pattern.format_map(context)


def match_routes(
    message: ChatMessage,
    routes: Iterable[Route],
    guild_lookup: Optional[GuildLookupPort] = None,
) -> List[Dispatch]:
    """Return the dispatches produced by every route that fires for ``message``.

    Matching logic:
    - Disabled routes are skipped.
    - A custom trigger, when present, is the only condition evaluated.
    - Otherwise the channel id must equal the trigger's (when set) and the
      regex must find a match in the body (when set).
    - Routing and template problems skip the route, never the message.
    """

    dispatches: List[Dispatch] = []

    for index, route in enumerate(routes):
        if not route.enabled:
            continue
        trigger = route.trigger

        match: Optional[re.Match] = None
        if trigger.custom:
            if not _custom_fires(trigger.custom, message):
                continue
        else:
            if trigger.channel_id and not _channel_fires(trigger.channel_id, message):
                continue
            if trigger.regex:
                pattern = route.pattern
                if pattern is None:
                    try:
                        pattern = re.compile(trigger.regex)
                    except re.error as exc:
                        LOGGER.warning("Route %s: skipping, regex %r: %s", index, trigger.regex, exc)
                        continue
                match = pattern.search(message.message)
                if match is None:
                    continue

        name = message.author
        body = message.message
        guild_value: Optional[str] = None
        context: dict[str, Any] = {}
        if match is not None:
            named = {key: value or "" for key, value in match.groupdict().items()}
            context.update(named)
            name = named.get("name", name)
            body = named.get("message", body)
            guild_value = named.get("guild")

            skip = False
            for label, idx in (
                ("name_index", trigger.name_index),
                ("message_index", trigger.message_index),
                ("guild_index", trigger.guild_index),
            ):
                if idx is None:
                    continue
                value = _group(match, idx)
                if value is None:
                    LOGGER.warning(
                        "Route %s: %s %s greater than matches %s",
                        index,
                        label,
                        idx,
                        match.re.groups,
                    )
                    skip = True
                    break
                if label == "name_index":
                    name = value
                elif label == "message_index":
                    body = value
                else:
                    guild_value = value
            if skip:
                continue

        channel_id = route.channel_id
        if guild_value:
            resolved = _resolve_channel(route, index, guild_value, guild_lookup)
            if resolved is None:
                continue
            channel_id = resolved

        context.update(
            name=name,
            message=body,
            channel_id=channel_id,
            channel_number=message.channel_number,
            source=message.source_endpoint,
        )
        try:
            text = _render(route, context)
        except Exception as exc:
            LOGGER.warning("Route %s: template execute failed: %s", index, exc)
            continue

        dispatches.append(
            Dispatch(
                route_index=index,
                target=route.target,
                channel_id=channel_id,
                text=text,
                author=name,
                channel_number=message.channel_number,
                guild_id=route.guild_id,
            )
        )

    if not dispatches:
        LOGGER.debug(
            "Message from %s discarded, no routes matched: %s",
            message.source_endpoint,
            message.message,
        )
    return dispatches
