"""
Supervision of the squeezelite child process.

The supervisor only starts the player and waits for it to exit. It never
signals or restarts the child: when the player dies the bridge exits, and
restarting is left to a service manager.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from collections.abc import Sequence

from mprisqueeze.errors import BinaryNotFoundError, SpawnError, SpawnPermissionError

logger = logging.getLogger(__name__)


def resolve_binary(name: str) -> str | None:
    """
    Resolve a binary name to its full path.

    Names containing a path separator are checked as given, others are
    searched on PATH.
    """
    return shutil.which(name)


class SupervisedProcess:
    """Handle on a running player process."""

    def __init__(self, argv: Sequence[str], process: asyncio.subprocess.Process) -> None:
        self.argv = list(argv)
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        """Exit status, or None while the process is running."""
        return self._process.returncode

    async def wait(self) -> int:
        """
        Wait for the process to exit.

        Returns:
            The exit status; negative values are the signal that killed it.
        """
        returncode = await self._process.wait()
        if returncode == 0:
            logger.info("%s (PID %d) exited", self.argv[0], self.pid)
        elif returncode < 0:
            logger.warning(
                "%s (PID %d) was killed by signal %d", self.argv[0], self.pid, -returncode
            )
        else:
            logger.warning(
                "%s (PID %d) exited with status %d", self.argv[0], self.pid, returncode
            )
        return returncode

    def __repr__(self) -> str:
        return f"SupervisedProcess(pid={self.pid}, argv={self.argv!r})"


async def spawn(argv: Sequence[str]) -> SupervisedProcess:
    """
    Start the player binary with inherited stdio.

    Args:
        argv: Binary name or path followed by its arguments.

    Returns:
        The running process.

    Raises:
        BinaryNotFoundError: If argv[0] cannot be found.
        SpawnPermissionError: If argv[0] cannot be executed.
        SpawnError: For any other OS error while starting.
    """
    if not argv:
        raise SpawnError("Empty command line")

    binary = resolve_binary(argv[0])
    if binary is None:
        if os.sep in argv[0] and os.path.exists(argv[0]):
            raise SpawnPermissionError(f"Permission denied: {argv[0]}")
        raise BinaryNotFoundError(f"Binary not found: {argv[0]}")

    logger.info("Starting %s", " ".join(argv))

    try:
        process = await asyncio.create_subprocess_exec(binary, *argv[1:])
    except FileNotFoundError as e:
        raise BinaryNotFoundError(f"Binary not found: {argv[0]}") from e
    except PermissionError as e:
        raise SpawnPermissionError(f"Permission denied: {argv[0]}") from e
    except OSError as e:
        raise SpawnError(f"Cannot start {argv[0]}: {e}") from e

    supervised = SupervisedProcess(argv, process)
    logger.info("%s started with PID %d", argv[0], supervised.pid)
    return supervised
