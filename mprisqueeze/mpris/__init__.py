"""
MPRIS bridge.

- player: MPRIS semantics mapped onto LMS commands (no D-Bus dependency)
- service: dbus-python binding exporting /org/mpris/MediaPlayer2
- watcher: status polling for PropertiesChanged notifications
"""

from mprisqueeze.mpris.player import LoopStatus, MprisPlayer, PlaybackStatus
from mprisqueeze.mpris.watcher import StatusWatcher

__all__ = ["LoopStatus", "MprisPlayer", "PlaybackStatus", "StatusWatcher"]
