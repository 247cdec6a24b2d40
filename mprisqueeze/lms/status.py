"""
Decoding of LMS `status` and `players` query results.

LMS is loose with types: numbers arrive as JSON numbers or as strings
depending on the command and server version, and fields are simply left
out when they do not apply (e.g. no artist for a radio stream, no
playlist_loop when the playlist is empty). Every accessor here treats a
missing or unusable field as absent instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import urljoin

# Tags requested with `status`:
#   a=artist, l=album, d=duration, c=coverid, K=artwork_url, u=url
STATUS_TAGS = "tags:aldcKu"


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            return default
    return default


def _as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


@dataclass(frozen=True)
class TrackInfo:
    """The current track as reported in playlist_loop."""

    index: int
    title: str = ""
    artist: str = ""
    album: str = ""
    duration: float = 0.0
    artwork_url: str = ""
    url: str = ""

    @classmethod
    def from_result(cls, item: dict[str, Any], index: int, base_url: str) -> TrackInfo:
        return cls(
            index=index,
            title=_as_str(item.get("title")),
            artist=_as_str(item.get("artist")),
            album=_as_str(item.get("album")),
            duration=_as_float(item.get("duration")),
            artwork_url=_artwork_url(item, base_url),
            url=_as_str(item.get("url")),
        )


def _artwork_url(item: dict[str, Any], base_url: str) -> str:
    """
    Build an absolute artwork URL.

    Remote streams carry artwork_url (absolute, or relative to the server),
    library tracks carry a coverid served under /music/<coverid>/cover.jpg.
    """
    artwork = _as_str(item.get("artwork_url"))
    if artwork:
        return urljoin(base_url + "/", artwork)

    coverid = _as_str(item.get("coverid"))
    if coverid:
        return f"{base_url}/music/{coverid}/cover.jpg"

    return ""


@dataclass(frozen=True)
class PlayerStatus:
    """Snapshot of one player, valid for a single request/response cycle."""

    mode: str = "stop"
    time: float = 0.0
    volume: int = 0
    shuffle: int = 0
    repeat: int = 0
    playlist_index: int = 0
    playlist_tracks: int = 0
    can_seek: bool = False
    track: TrackInfo | None = None

    @property
    def muted(self) -> bool:
        # LMS reports the volume as a negative number while muted
        return self.volume < 0

    @classmethod
    def from_result(cls, result: dict[str, Any], base_url: str) -> PlayerStatus:
        """
        Build a status from the `result` object of a status query.

        Args:
            result: The JSON-RPC result object.
            base_url: Server base URL used to absolutize artwork links.
        """
        playlist_tracks = _as_int(result.get("playlist_tracks"))
        playlist_index = _as_int(result.get("playlist_cur_index"))

        track = None
        loop = result.get("playlist_loop")
        if playlist_tracks > 0 and isinstance(loop, list) and loop and isinstance(loop[0], dict):
            track = TrackInfo.from_result(loop[0], playlist_index, base_url)
            if not track.duration:
                track = replace(track, duration=_as_float(result.get("duration")))

        if track is None:
            can_seek = False
        elif "can_seek" in result:
            can_seek = bool(_as_int(result.get("can_seek")))
        else:
            can_seek = track.duration > 0

        return cls(
            mode=_as_str(result.get("mode")) or "stop",
            time=_as_float(result.get("time")),
            volume=_as_int(result.get("mixer volume")),
            shuffle=_as_int(result.get("playlist shuffle")),
            repeat=_as_int(result.get("playlist repeat")),
            playlist_index=playlist_index,
            playlist_tracks=playlist_tracks,
            can_seek=can_seek,
            track=track,
        )


@dataclass(frozen=True)
class PlayerInfo:
    """One entry of the `players` query."""

    playerid: str
    name: str
    connected: bool = False
    model: str = ""

    @classmethod
    def from_result(cls, item: dict[str, Any]) -> PlayerInfo:
        return cls(
            playerid=_as_str(item.get("playerid")),
            name=_as_str(item.get("name")),
            connected=bool(_as_int(item.get("connected"))),
            model=_as_str(item.get("model")),
        )
