"""
Configuration management for mprisqueeze.

Settings come from an optional TOML file and from the command line; CLI
values win. The file holds a single [bridge] table:

    [bridge]
    name = "Kitchen"
    host = "192.168.1.10"
    port = 9000
    command = "squeezelite -o default -n {name} -s {server}"
    discovery_timeout = 3.0
    request_timeout = 5.0
    poll_interval = 0.5
    player_wait_timeout = 10.0
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from mprisqueeze.errors import ConfigError
from mprisqueeze.models import DEFAULT_JSON_PORT, PlayerIdentity, ServerAddress
from mprisqueeze.player.template import DEFAULT_TEMPLATE

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.toml"

DEFAULT_PLAYER_NAME = "Squeezelite"


def default_config_path() -> Path:
    """$XDG_CONFIG_HOME/mprisqueeze/config.toml (XDG_CONFIG_HOME defaults to ~/.config)."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "mprisqueeze" / CONFIG_FILE_NAME


@dataclass(frozen=True)
class BridgeConfig:
    """Runtime settings of one bridge instance."""

    name: str = DEFAULT_PLAYER_NAME
    host: str | None = None
    port: int = DEFAULT_JSON_PORT
    command: str = DEFAULT_TEMPLATE
    discovery_timeout: float = 3.0
    request_timeout: float = 5.0
    poll_interval: float = 0.5
    player_wait_timeout: float = 10.0

    @property
    def identity(self) -> PlayerIdentity:
        return PlayerIdentity(self.name)

    @property
    def server(self) -> ServerAddress | None:
        """The configured server, or None when it has to be discovered."""
        if not self.host:
            return None
        return ServerAddress(host=self.host, port=self.port)

    def with_overrides(self, **values: Any) -> BridgeConfig:
        """Return a copy with every non-None value applied."""
        return replace(self, **{key: value for key, value in values.items() if value is not None})

    def validate(self) -> None:
        """
        Check values that the dataclass types cannot express.

        Raises:
            ConfigError: On an empty name, a bad port or a non-positive timeout.
        """
        try:
            PlayerIdentity(self.name)
            if self.host:
                ServerAddress(host=self.host, port=self.port)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        for key in ("discovery_timeout", "request_timeout"):
            if getattr(self, key) <= 0:
                raise ConfigError(f"{key} must be positive")
        if self.poll_interval < 0 or self.player_wait_timeout < 0:
            raise ConfigError("poll_interval and player_wait_timeout must not be negative")


# Expected types per key; int is accepted where a float is expected
_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "name": (str,),
    "host": (str,),
    "port": (int,),
    "command": (str,),
    "discovery_timeout": (int, float),
    "request_timeout": (int, float),
    "poll_interval": (int, float),
    "player_wait_timeout": (int, float),
}


def _parse_bridge_table(data: dict[str, Any], source: Path) -> dict[str, Any]:
    known = {f.name for f in fields(BridgeConfig)}
    values: dict[str, Any] = {}

    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown setting %r in %s", key, source)
            continue

        expected = _FIELD_TYPES[key]
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigError(
                f"{source}: {key} must be {' or '.join(t.__name__ for t in expected)}, "
                f"got {type(value).__name__}"
            )

        values[key] = float(value) if float in expected else value

    return values


def load_config(config_path: Path | None = None) -> BridgeConfig:
    """
    Load configuration from a TOML file.

    Args:
        config_path: Explicit path; must exist. If None, the default path is
            used when it exists and built-in defaults otherwise.

    Returns:
        Loaded BridgeConfig instance.

    Raises:
        ConfigError: If the file is missing (explicit path), unreadable,
            not valid TOML, or has values of the wrong type.
    """
    if config_path is None:
        config_path = default_config_path()
        if not config_path.exists():
            logger.debug("No config file at %s, using defaults", config_path)
            return BridgeConfig()

    logger.debug("Loading config from %s", config_path)

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {config_path}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    bridge = data.get("bridge", {})
    if not isinstance(bridge, dict):
        raise ConfigError(f"{config_path}: [bridge] must be a table")

    config = BridgeConfig(**_parse_bridge_table(bridge, config_path))
    try:
        config.validate()
    except ConfigError as e:
        raise ConfigError(f"{config_path}: {e}") from e
    return config
