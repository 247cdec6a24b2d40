"""
Change notifications for MPRIS clients.

LMS is not subscribed to; instead the watcher polls the player status and
reports PlaybackStatus/Metadata changes so the D-Bus side can emit
PropertiesChanged. The last seen values are only used to detect changes:
property reads never come from here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from mprisqueeze.errors import RpcError
from mprisqueeze.mpris.player import MprisPlayer

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5

# Properties whose changes are announced
WATCHED_PROPERTIES = ("PlaybackStatus", "Metadata")

ChangeCallback = Callable[[dict[str, Any]], None]


class StatusWatcher:
    """Polls a player and reports changed properties through a callback."""

    def __init__(
        self,
        player: MprisPlayer,
        on_change: ChangeCallback,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.player = player
        self.on_change = on_change
        self.interval = interval
        self._last: dict[str, Any] = {}
        self._task: asyncio.Task[None] | None = None

    async def poll_once(self) -> dict[str, Any]:
        """
        Fetch the status once and report what changed since the last poll.

        The first poll only records the current values.

        Returns:
            The changed properties (possibly empty).
        """
        properties = await self.player.get_all()
        current = {name: properties[name] for name in WATCHED_PROPERTIES}

        changed = {}
        if self._last:
            changed = {
                name: value for name, value in current.items() if self._last.get(name) != value
            }
        self._last = current

        if changed:
            logger.info("Player properties changed: %s", ", ".join(changed))
            self.on_change(changed)
        return changed

    async def run(self) -> None:
        """Poll until cancelled."""
        while True:
            try:
                await self.poll_once()
            except RpcError as e:
                logger.debug("Status poll failed: %s", e)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="mpris-status-watcher")

    async def stop(self) -> None:
        """Cancel polling. A task that already died is logged, not re-raised."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Status watcher failed")
