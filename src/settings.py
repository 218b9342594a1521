"""Configuration loading for eqrelay.

All user-editable settings (endpoints, routes, stores, logging) live in a
single JSON file for quick edits without touching Python. Secrets may be
supplied through the environment (or a .env file) instead.
"""

import json
import os
from typing import Optional

from dotenv import load_dotenv

from core.config import BridgeConfig, build_config

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# EQRELAY_CONFIG points at an alternate file, e.g. one per server.
CONFIG_PATH = os.getenv("EQRELAY_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))

# Environment variables that override config values, by section and key.
ENV_OVERRIDES = {
    "DISCORD_BOT_TOKEN": ("discord", "bot_token"),
    "TELNET_USERNAME": ("telnet", "username"),
    "TELNET_PASSWORD": ("telnet", "password"),
}

DEFAULT_CONFIG: dict = {
    "debug": False,
    "keep_alive": True,
    "keep_alive_retry": "10s",
    "pump_timeout": "3s",
    "users_database": "users.txt",
    "guilds_database": "guilds.txt",
    "registrations_database": "registrations.db",
    "discord": {
        "enabled": True,
        "client_id": "",
        "bot_token": "",
        "server_id": "",
        "routes": [
            {
                "enabled": True,
                "trigger": {"channel_id": "INSERTOOCCHANNELHERE"},
                "target": "telnet",
                "channel_id": "ooc",
                "message_pattern": "{name}: {message}",
            }
        ],
    },
    "telnet": {
        "enabled": False,
        "host": "127.0.0.1:23",
        "username": "",
        "password": "",
        "item_url": "http://everquest.allakhazam.com/db/item.html?item=",
        "legacy": False,
        "announce_server_status": False,
        "convert_ooc_auction": False,
        "message_deadline": "10s",
        "routes": [
            {
                "enabled": True,
                "trigger": {"channel_id": "260"},
                "target": "discord",
                "channel_id": "INSERTOOCCHANNELHERE",
                "message_pattern": "{name} **OOC**: {message}",
            },
            {
                "enabled": True,
                "trigger": {"channel_id": "261"},
                "target": "discord",
                "channel_id": "INSERTAUCTIONCHANNELHERE",
                "message_pattern": "{name} **auctions**: {message}",
            },
        ],
    },
    "nats": {
        "enabled": False,
        "host": "127.0.0.1:4222",
        "item_url": "http://everquest.allakhazam.com/db/item.html?item=",
        "convert_ooc_auction": False,
        "routes": [
            {
                "enabled": True,
                "trigger": {"custom": "260"},
                "target": "discord",
                "channel_id": "INSERTOOCCHANNELHERE",
                "message_pattern": "{name} **OOC**: {message}",
            },
            {
                "enabled": True,
                "trigger": {"custom": "admin"},
                "target": "discord",
                "channel_id": "INSERTADMINCHANNELHERE",
                "message_pattern": "**ADMIN**: {message}",
            },
        ],
    },
    "eqlog": {
        "enabled": False,
        "path": "",
        "item_url": "http://everquest.allakhazam.com/db/item.html?item=",
        "convert_general_auction": False,
        "routes": [
            {
                "enabled": True,
                "trigger": {"channel_id": "260"},
                "target": "discord",
                "channel_id": "INSERTOOCCHANNELHERE",
                "message_pattern": "{name} **OOC**: {message}",
            }
        ],
    },
    "logging": {
        "enabled": True,
        "level": "INFO",
        "console": True,
        "file": {"enabled": False, "path": "logs/eqrelay.log"},
        "redact": {"enabled": True, "patterns": list(ENV_OVERRIDES)},
    },
}


class ConfigMissing(FileNotFoundError):
    """Raised after a default config was written and needs editing."""


def write_default_config(path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(DEFAULT_CONFIG, handle, indent=2)
        handle.write("\n")


def load_raw_config(path: Optional[str] = None) -> dict:
    """Load the JSON config, writing a default one when none exists."""

    path = path or CONFIG_PATH
    if not os.path.exists(path):
        write_default_config(path)
        raise ConfigMissing(f"{path} not found, a default was created. Please edit it and restart")

    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def apply_env_overrides(raw: dict) -> dict:
    """Return a copy of ``raw`` with secrets taken from the environment."""

    load_dotenv()
    merged = dict(raw)
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(variable)
        if not value:
            continue
        merged[section] = {**(merged.get(section) or {}), key: value}
    return merged


def load_config(path: Optional[str] = None) -> BridgeConfig:
    return build_config(apply_env_overrides(load_raw_config(path)))
