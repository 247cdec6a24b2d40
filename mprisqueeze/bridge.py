"""
mprisqueeze bridge - startup and lifetime of one bridge instance.

Startup sequence:
1. Resolve the LMS server (configured, or UDP discovery)
2. Render the squeezelite command line
3. Spawn squeezelite
4. Wait (bounded) for the player to register with LMS
5. Export the MPRIS object on the session bus and start the status watcher

The bridge then runs until squeezelite exits or SIGINT/SIGTERM arrives.
Errors in steps 1-3 are fatal and propagate to the caller. A failure in
step 5 is fatal too, but the spawned player is left running. Once running,
failing LMS requests only fail the D-Bus call that made them.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable
from typing import Any, Protocol

from mprisqueeze.config import BridgeConfig
from mprisqueeze.errors import RpcError
from mprisqueeze.lms.client import LMSClient
from mprisqueeze.models import PlayerIdentity, ServerAddress
from mprisqueeze.mpris.player import MprisPlayer
from mprisqueeze.mpris.watcher import StatusWatcher
from mprisqueeze.player.process import SupervisedProcess, spawn
from mprisqueeze.player.template import render
from mprisqueeze.protocol.discovery import discover

logger = logging.getLogger(__name__)

# Delay between two `players` queries while waiting for squeezelite
PLAYER_POLL_INTERVAL = 0.5


class Service(Protocol):
    """What the bridge needs from the MPRIS service."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def emit_properties_changed(self, changed: dict[str, Any]) -> None: ...


ServiceFactory = Callable[[MprisPlayer, PlayerIdentity], Service]


def _default_service_factory(player: MprisPlayer, identity: PlayerIdentity) -> Service:
    # dbus-python and PyGObject are only needed once the bridge really runs
    from mprisqueeze.mpris.service import MprisService

    return MprisService(player, identity)


def exit_code_for(returncode: int) -> int:
    """Map the player's exit status to the bridge's exit code."""
    if returncode < 0:
        # Killed by a signal
        return 1
    return returncode


class Bridge:
    """
    One squeezelite process exposed over MPRIS.

    The player identity and server address are fixed once run() has
    resolved them and are only passed on, never modified.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        service_factory: ServiceFactory | None = None,
    ) -> None:
        self.config = config
        self.identity = config.identity
        self.server: ServerAddress | None = config.server
        self.process: SupervisedProcess | None = None
        self._service_factory = service_factory or _default_service_factory
        self._shutdown_event: asyncio.Event | None = None

    async def resolve_server(self) -> ServerAddress:
        """Return the configured server or discover one."""
        if self.server is None:
            self.server = await discover(self.config.discovery_timeout)
        else:
            logger.info("Using LMS server %s", self.server)
        return self.server

    async def wait_for_player(self, client: LMSClient) -> bool:
        """
        Poll LMS until our player shows up in the players list.

        Gives up after config.player_wait_timeout seconds, or as soon as
        the player process has exited.

        Returns:
            True if the player was seen.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.player_wait_timeout

        while True:
            try:
                players = await client.players()
            except RpcError as e:
                logger.debug("Cannot list players yet: %s", e)
            else:
                if any(p.name == self.identity.name for p in players):
                    logger.info("Player %s is connected to LMS", self.identity)
                    return True

            if self.process is not None and self.process.returncode is not None:
                return False

            if loop.time() >= deadline:
                logger.warning(
                    "Player %s did not show up on %s within %g seconds",
                    self.identity,
                    client.server,
                    self.config.player_wait_timeout,
                )
                return False

            await asyncio.sleep(PLAYER_POLL_INTERVAL)

    def request_shutdown(self) -> None:
        """Stop the bridge; the player process is left alone."""
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            self.request_shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform / not in the main thread
                pass

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(sig)

    async def run(self) -> int:
        """
        Run the bridge until the player exits or a shutdown is requested.

        Returns:
            Process exit code: the player's exit status, 1 if it was killed
            by a signal, 0 on a requested shutdown.

        Raises:
            DiscoveryError, TemplateError, SpawnError, ServiceError: On
                startup failures.
        """
        server = await self.resolve_server()
        argv = render(self.config.command, self.identity, server)
        self.process = await spawn(argv)

        loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        self._install_signal_handlers(loop)

        try:
            async with LMSClient(server, timeout=self.config.request_timeout) as client:
                if self.config.player_wait_timeout > 0:
                    await self.wait_for_player(client)
                return await self._serve(client)
        finally:
            self._remove_signal_handlers(loop)

    async def _serve(self, client: LMSClient) -> int:
        # Everything using the client is stopped before the client closes
        player = MprisPlayer(client, self.identity)
        service = self._service_factory(player, self.identity)
        service.start()

        watcher: StatusWatcher | None = None
        try:
            if self.config.poll_interval > 0:
                watcher = StatusWatcher(
                    player, service.emit_properties_changed, self.config.poll_interval
                )
                watcher.start()

            return await self._wait_for_exit()
        finally:
            if watcher is not None:
                await watcher.stop()
            service.stop()

    async def _wait_for_exit(self) -> int:
        assert self.process is not None and self._shutdown_event is not None

        exit_task = asyncio.create_task(self.process.wait(), name="player-exit")
        shutdown_task = asyncio.create_task(self._shutdown_event.wait(), name="shutdown")

        try:
            done, _ = await asyncio.wait(
                {exit_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (exit_task, shutdown_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if exit_task in done:
            return exit_code_for(exit_task.result())

        logger.info("Shutting down, leaving %s running", self.process)
        return 0
