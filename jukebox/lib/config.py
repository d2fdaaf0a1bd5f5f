# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Configuration for the jukebox service.

Settings come from, in order of precedence:
  1. command-line flags            (--source-path, --port, --password, ...)
  2. environment                   (JUKEBOX_PASSWORD only, keeps the secret
                                    out of the process list)
  3. a JSON config file            (--config, /etc/jukebox/config.json,
                                    then config.json in the CWD)
  4. built-in defaults

Usage:
    from jukebox.lib.config import cfg, load_settings

    settings = load_settings(sys.argv[1:])
    player_cmd = cfg("player", "command", default=PLAYER_COMMAND)
"""

import argparse
import json
import logging
import os
import string

from .errors import ConfigError

logger = logging.getLogger("jukebox.config")

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/jukebox/config.json",
    "config.json",
]

DEFAULT_SOURCE_PATH = "/media/music"
DEFAULT_PORT = 3003
DEFAULT_HOST = "0.0.0.0"

# argv templates and the one placeholder each must fill
_PLACEHOLDERS = {"player": "path", "volume": "volume"}


def _check_placeholders(command: list, required: str, where: str) -> None:
    """Every {field} in an argv template must be *required*, and it must appear."""
    try:
        fields = {name for part in command
                  for _, name, _, _ in string.Formatter().parse(part) if name is not None}
    except ValueError as e:
        raise ConfigError(f"{where}: {e}")
    if fields != {required}:
        raise ConfigError(f"{where} must use {{{required}}} and no other placeholder")


def _validate(config: dict, path: str) -> None:
    """Warn about suspicious config values, reject unusable command templates."""
    if not isinstance(config, dict):
        raise ConfigError(f"Config {path}: top level must be an object")
    for key in ("player", "volume", "library"):
        section = config.get(key) or {}
        command = section.get("command")
        if command is not None and not (
                isinstance(command, list) and all(isinstance(c, str) for c in command)):
            logger.warning("Config %s: %s.command must be a list of strings", path, key)
        elif command is not None and key in _PLACEHOLDERS:
            _check_placeholders(command, _PLACEHOLDERS[key], f"Config {path}: {key}.command")
    if "password" in (config.get("http") or {}):
        logger.warning("Config %s: http.password stored in plain text, prefer JUKEBOX_PASSWORD", path)


def load_config(path: str | None = None) -> dict:
    """Load config from *path* or the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for candidate in ([path] if path else _SEARCH_PATHS):
        try:
            with open(candidate) as f:
                data = json.load(f)
        except FileNotFoundError:
            if path:
                raise ConfigError(f"Config file not found: {path}")
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", candidate, e)
            if path:
                raise ConfigError(f"Invalid JSON in {path}: {e}")
            continue
        _validate(data, candidate)
        _config = data
        logger.info("Config loaded from %s", candidate)
        return _config

    logger.debug("No config.json found, using defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("tunnel")                     → config["tunnel"]
    cfg("player", "command")          → config["player"]["command"]
    cfg("http", "port", default=3003) → config["http"]["port"] or 3003
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config(path: str | None = None):
    """Force re-read from disk (for testing)."""
    global _config
    _config = None
    return load_config(path)


class Settings:
    """Resolved startup settings."""

    def __init__(self, source_path: str, port: int, host: str, password: str,
                 tunnel: bool = True, verbose: bool = False):
        self.source_path = source_path
        self.port = port
        self.host = host
        self.password = password
        self.tunnel = tunnel
        self.verbose = verbose


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jukebox", description="Remote jukebox: play local music from a browser")
    parser.add_argument("--source-path", help=f"music root (default: {DEFAULT_SOURCE_PATH})")
    parser.add_argument("--port", type=int, help=f"HTTP port (default: {DEFAULT_PORT})")
    parser.add_argument("--host", help=f"bind address (default: {DEFAULT_HOST})")
    parser.add_argument("--password", help="shared secret (or set JUKEBOX_PASSWORD)")
    parser.add_argument("--config", help="path to config.json")
    parser.add_argument("--no-tunnel", action="store_true", help="do not open an ngrok tunnel")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return parser


def load_settings(argv=None, environ=None) -> Settings:
    """Resolve settings from flags, environment and config file.

    Raises ConfigError when no password is available.
    """
    args = build_parser().parse_args(argv)
    environ = os.environ if environ is None else environ
    if args.config:
        reload_config(args.config)

    password = args.password or environ.get("JUKEBOX_PASSWORD") or cfg("http", "password")
    if not password:
        raise ConfigError("PASSWORD parameter is required! (--password or JUKEBOX_PASSWORD)")

    source_path = args.source_path or cfg("library", "root", default=DEFAULT_SOURCE_PATH)
    port = args.port if args.port is not None else int(cfg("http", "port", default=DEFAULT_PORT))
    host = args.host or cfg("http", "host", default=DEFAULT_HOST)
    tunnel = not args.no_tunnel and bool(cfg("tunnel", "enabled", default=True))

    return Settings(
        source_path=str(source_path).rstrip("/") or "/",
        port=port,
        host=host,
        password=str(password),
        tunnel=tunnel,
        verbose=args.verbose,
    )
