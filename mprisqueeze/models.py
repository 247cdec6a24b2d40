"""
Identity and address types shared by every component.

Both are frozen: they are built once at startup and handed to each
component that needs them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Default LMS HTTP / JSON-RPC port
DEFAULT_JSON_PORT = 9000

MPRIS_BUS_PREFIX = "org.mpris.MediaPlayer2"
MPRIS_OBJECT_PATH = "/org/mpris/MediaPlayer2"

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_name(name: str) -> str:
    """
    Turn a player name into a valid D-Bus name element / object path element.

    Both only allow [A-Za-z0-9_] and must not start with a digit.
    """
    element = _INVALID_NAME_CHARS.sub("_", name)
    if not element or element[0].isdigit():
        element = "_" + element
    return element


@dataclass(frozen=True)
class PlayerIdentity:
    """The LMS player name this process represents."""

    name: str

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Player name must not be empty")

    @property
    def bus_name(self) -> str:
        """Well-known MPRIS bus name for this player."""
        return f"{MPRIS_BUS_PREFIX}.{sanitize_name(self.name)}"

    def track_path(self, index: int) -> str:
        """Object path used as mpris:trackid for a playlist position."""
        return f"{MPRIS_OBJECT_PATH}/{sanitize_name(self.name)}/track/{index}"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ServerAddress:
    """Where the LMS JSON-RPC endpoint lives."""

    host: str
    port: int = DEFAULT_JSON_PORT

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("Server host must not be empty")
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid server port: {self.port}")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def url(self) -> str:
        """Full URL of the JSON-RPC endpoint."""
        return f"{self.base_url}/jsonrpc.js"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
