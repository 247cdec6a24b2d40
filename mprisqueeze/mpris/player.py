"""
MPRIS player semantics on top of the LMS control API.

This module knows nothing about D-Bus. It answers MPRIS property reads and
performs MPRIS methods for one player, returning plain Python values that
the D-Bus binding (mprisqueeze.mpris.service) wraps into D-Bus types.

Rules:
- Every property read issues a fresh `status` query; nothing is cached.
- Every method issues exactly one LMS command. PlayPause is the exception
  that reads the status first to choose between `play` and `pause`; the
  read and the command are not atomic.
- RpcError propagates to the caller unchanged.

References:
    https://specifications.freedesktop.org/mpris-spec/latest/Player_Interface.html
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from mprisqueeze.lms.client import LMSClient
from mprisqueeze.lms.status import PlayerStatus
from mprisqueeze.models import PlayerIdentity

logger = logging.getLogger(__name__)

MICROSECONDS_PER_SECOND = 1_000_000


class PlaybackStatus(str, Enum):
    """MPRIS PlaybackStatus values."""

    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"


class LoopStatus(str, Enum):
    """MPRIS LoopStatus values."""

    NONE = "None"
    TRACK = "Track"
    PLAYLIST = "Playlist"


MODE_TO_STATUS: dict[str, PlaybackStatus] = {
    "play": PlaybackStatus.PLAYING,
    "pause": PlaybackStatus.PAUSED,
    "stop": PlaybackStatus.STOPPED,
}

# LMS `playlist repeat`: 0 = off, 1 = song, 2 = playlist
REPEAT_TO_LOOP: dict[int, LoopStatus] = {
    0: LoopStatus.NONE,
    1: LoopStatus.TRACK,
    2: LoopStatus.PLAYLIST,
}
LOOP_TO_REPEAT: dict[LoopStatus, int] = {loop: repeat for repeat, loop in REPEAT_TO_LOOP.items()}


def playback_status_from_mode(mode: Any) -> PlaybackStatus:
    """Map an LMS mode string to a PlaybackStatus; unknown modes are Stopped."""
    if not isinstance(mode, str):
        return PlaybackStatus.STOPPED
    return MODE_TO_STATUS.get(mode, PlaybackStatus.STOPPED)


def loop_status_from_repeat(repeat: int) -> LoopStatus:
    return REPEAT_TO_LOOP.get(repeat, LoopStatus.NONE)


def seconds_to_microseconds(seconds: float) -> int:
    return int(round(seconds * MICROSECONDS_PER_SECOND))


def microseconds_to_seconds(microseconds: int) -> float:
    return microseconds / MICROSECONDS_PER_SECOND


def format_seconds(seconds: float, *, relative: bool = False) -> str:
    """
    Format a time value for the LMS `time` command.

    A leading sign makes LMS seek relative to the current position.
    """
    text = f"{abs(seconds):.3f}".rstrip("0").rstrip(".")
    if relative:
        return ("-" if seconds < 0 else "+") + text
    return text


def volume_from_lms(volume: int) -> float:
    """LMS volume 0..100 (negative while muted) to MPRIS 0.0..1.0."""
    if volume <= 0:
        return 0.0
    return min(volume, 100) / 100.0


def volume_to_lms(volume: float) -> int:
    """MPRIS volume to LMS 0..100; MPRIS asks for negative values to be clamped to 0."""
    return int(round(max(0.0, min(volume, 1.0)) * 100))


class MprisPlayer:
    """
    The org.mpris.MediaPlayer2.Player interface for one LMS player.

    Property getters are coroutines named after the MPRIS property in
    snake_case; `get_property` looks them up by their MPRIS name.
    """

    # Properties whose value never changes
    CONSTANT_PROPERTIES: dict[str, Any] = {
        "Rate": 1.0,
        "MinimumRate": 1.0,
        "MaximumRate": 1.0,
        "CanControl": True,
    }

    def __init__(self, client: LMSClient, player: PlayerIdentity) -> None:
        self.client = client
        self.player = player

    async def _command(self, *command: str) -> None:
        await self.client.request(self.player, command)

    async def status(self) -> PlayerStatus:
        return await self.client.status(self.player)

    # -------------------------------------------------------------------------
    # Property reads
    # -------------------------------------------------------------------------

    async def playback_status(self) -> PlaybackStatus:
        logger.debug("MprisPlayer.playback_status")
        status = await self.status()
        return playback_status_from_mode(status.mode)

    async def metadata(self) -> dict[str, Any]:
        logger.debug("MprisPlayer.metadata")
        return self._metadata(await self.status())

    async def position(self) -> int:
        logger.debug("MprisPlayer.position")
        status = await self.status()
        return seconds_to_microseconds(status.time)

    async def volume(self) -> float:
        logger.debug("MprisPlayer.volume")
        status = await self.status()
        return volume_from_lms(status.volume)

    async def shuffle(self) -> bool:
        logger.debug("MprisPlayer.shuffle")
        status = await self.status()
        return status.shuffle != 0

    async def loop_status(self) -> LoopStatus:
        logger.debug("MprisPlayer.loop_status")
        status = await self.status()
        return loop_status_from_repeat(status.repeat)

    async def can_go_next(self) -> bool:
        return (await self.status()).playlist_tracks > 0

    async def can_go_previous(self) -> bool:
        return (await self.status()).playlist_tracks > 0

    async def can_play(self) -> bool:
        return (await self.status()).playlist_tracks > 0

    async def can_pause(self) -> bool:
        return (await self.status()).playlist_tracks > 0

    async def can_seek(self) -> bool:
        return (await self.status()).can_seek

    def _metadata(self, status: PlayerStatus) -> dict[str, Any]:
        track = status.track
        if track is None:
            return {}

        metadata: dict[str, Any] = {"mpris:trackid": self.player.track_path(track.index)}
        if track.title:
            metadata["xesam:title"] = track.title
        if track.artist:
            metadata["xesam:artist"] = [track.artist]
        if track.album:
            metadata["xesam:album"] = track.album
        if track.duration > 0:
            metadata["mpris:length"] = seconds_to_microseconds(track.duration)
        if track.artwork_url:
            metadata["mpris:artUrl"] = track.artwork_url
        if track.url:
            metadata["xesam:url"] = track.url
        return metadata

    def _properties(self, status: PlayerStatus) -> dict[str, Any]:
        has_tracks = status.playlist_tracks > 0
        return {
            "PlaybackStatus": playback_status_from_mode(status.mode),
            "LoopStatus": loop_status_from_repeat(status.repeat),
            "Shuffle": status.shuffle != 0,
            "Metadata": self._metadata(status),
            "Volume": volume_from_lms(status.volume),
            "Position": seconds_to_microseconds(status.time),
            "CanGoNext": has_tracks,
            "CanGoPrevious": has_tracks,
            "CanPlay": has_tracks,
            "CanPause": has_tracks,
            "CanSeek": status.can_seek,
            **self.CONSTANT_PROPERTIES,
        }

    async def get_all(self) -> dict[str, Any]:
        """All player properties from a single status query."""
        logger.debug("MprisPlayer.get_all")
        return self._properties(await self.status())

    def _getter(self, name: str) -> Callable[[], Awaitable[Any]] | None:
        getters: dict[str, Callable[[], Awaitable[Any]]] = {
            "PlaybackStatus": self.playback_status,
            "LoopStatus": self.loop_status,
            "Shuffle": self.shuffle,
            "Metadata": self.metadata,
            "Volume": self.volume,
            "Position": self.position,
            "CanGoNext": self.can_go_next,
            "CanGoPrevious": self.can_go_previous,
            "CanPlay": self.can_play,
            "CanPause": self.can_pause,
            "CanSeek": self.can_seek,
        }
        return getters.get(name)

    def has_property(self, name: str) -> bool:
        return name in self.CONSTANT_PROPERTIES or self._getter(name) is not None

    async def get_property(self, name: str) -> Any:
        """
        Read one property by its MPRIS name.

        Raises:
            KeyError: If the interface has no such property.
        """
        if name in self.CONSTANT_PROPERTIES:
            return self.CONSTANT_PROPERTIES[name]
        getter = self._getter(name)
        if getter is None:
            raise KeyError(name)
        return await getter()

    # -------------------------------------------------------------------------
    # Methods
    # -------------------------------------------------------------------------

    async def play(self) -> None:
        logger.debug("MprisPlayer.play")
        await self._command("play")

    async def pause(self) -> None:
        logger.debug("MprisPlayer.pause")
        await self._command("pause", "1")

    async def play_pause(self) -> None:
        """Pause when playing, play otherwise."""
        logger.debug("MprisPlayer.play_pause")
        status = await self.playback_status()
        if status is PlaybackStatus.PLAYING:
            await self._command("pause", "1")
        else:
            await self._command("play")

    async def stop(self) -> None:
        logger.debug("MprisPlayer.stop")
        await self._command("stop")

    async def next(self) -> None:
        logger.debug("MprisPlayer.next")
        await self._command("playlist", "index", "+1")

    async def previous(self) -> None:
        logger.debug("MprisPlayer.previous")
        await self._command("playlist", "index", "-1")

    async def seek(self, offset: int) -> None:
        """Seek relative to the current position by `offset` microseconds."""
        logger.debug("MprisPlayer.seek %d", offset)
        await self._command(
            "time", format_seconds(microseconds_to_seconds(offset), relative=True)
        )

    async def set_position(self, track_id: str, position: int) -> None:
        """
        Seek to an absolute position in microseconds.

        Negative positions are ignored, as MPRIS requires. The track id is
        not checked against the current track since that would need a
        status query before the command.
        """
        logger.debug("MprisPlayer.set_position %s %d", track_id, position)
        if position < 0:
            return
        await self._command("time", format_seconds(microseconds_to_seconds(position)))

    async def set_volume(self, volume: float) -> None:
        logger.debug("MprisPlayer.set_volume %f", volume)
        await self._command("mixer", "volume", str(volume_to_lms(volume)))

    async def set_shuffle(self, shuffle: bool) -> None:
        logger.debug("MprisPlayer.set_shuffle %s", shuffle)
        await self._command("playlist", "shuffle", "1" if shuffle else "0")

    async def set_loop_status(self, loop_status: str) -> None:
        """
        Set the repeat mode.

        Raises:
            ValueError: If loop_status is not None, Track or Playlist.
        """
        logger.debug("MprisPlayer.set_loop_status %s", loop_status)
        repeat = LOOP_TO_REPEAT[LoopStatus(loop_status)]
        await self._command("playlist", "repeat", str(repeat))

    async def set_property(self, name: str, value: Any) -> None:
        """
        Write one property by its MPRIS name.

        Raises:
            KeyError: If the interface has no such property.
            PermissionError: If the property is read-only.
        """
        setters: dict[str, Callable[[Any], Awaitable[None]]] = {
            "Volume": lambda v: self.set_volume(float(v)),
            "Shuffle": lambda v: self.set_shuffle(bool(v)),
            "LoopStatus": lambda v: self.set_loop_status(str(v)),
        }
        if name == "Rate":
            # Only 1.0 is supported; MPRIS says to ignore other values
            return
        setter = setters.get(name)
        if setter is None:
            if self.has_property(name):
                raise PermissionError(name)
            raise KeyError(name)
        await setter(value)
