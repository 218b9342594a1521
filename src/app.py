"""Application entry point for the eqrelay chat relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from client import Client
from core.config import BridgeConfig, route_summary
from core.errors import BridgeError, ConfigError

NAME = "EQRELAY"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict, extra: Optional[list[str]] = None) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = [value for value in extra or [] if value]
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(bridge: BridgeConfig) -> None:
    config = dict(bridge.logging or {})
    if not config.get("enabled", False):
        logging.basicConfig(level=logging.DEBUG if bridge.debug else logging.INFO)
        return

    load_dotenv()
    level_name = "DEBUG" if bridge.debug else str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    # Secrets written into config.json are redacted alongside env values.
    secrets = _collect_redaction_values(
        config,
        extra=[bridge.discord.token, bridge.telnet.password],
    )
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/eqrelay.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # discord.py is chatty at DEBUG; keep it at INFO unless asked.
    if not bridge.debug:
        logging.getLogger("discord").setLevel(logging.INFO)


def _load(path: Optional[str]) -> BridgeConfig:
    try:
        return settings.load_config(path)
    except settings.ConfigMissing as exc:
        print(exc)
        sys.exit(1)
    except ConfigError as exc:
        print(f"invalid config: {exc}")
        sys.exit(1)


def _run(path: Optional[str]) -> None:
    _print_banner()
    config = _load(path)
    _configure_logging(config)
    logger = logging.getLogger(__name__)

    logger.info("Starting eqrelay")
    logger.info("Enabled endpoints: %s", ", ".join(config.enabled_endpoints()))
    route_count = sum(len(routes) for routes in config.routes.values())
    logger.info("%s routes are loaded", route_count)

    client = Client(config)
    try:
        asyncio.run(client.run_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except BridgeError as exc:
        logger.error("Startup failed: %s", exc)
        sys.exit(1)


def _check(path: Optional[str]) -> None:
    config = _load(path)
    print(f"config ok: endpoints={', '.join(config.enabled_endpoints())}")
    for line in route_summary(config):
        print(line)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="eqrelay")
    parser.add_argument("--config", help="Path to config.json (defaults to EQRELAY_CONFIG)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the relay")
    subparsers.add_parser("check", help="Validate the config and list routes")

    args = parser.parse_args(argv)
    if args.command == "check":
        _check(args.config)
        return
    _run(args.config)


if __name__ == "__main__":
    main()
