"""
Tests for the player process supervisor.

These start real (trivial) processes through /bin/sh.
"""

import os
import signal
import stat
from pathlib import Path

import pytest

from mprisqueeze.errors import BinaryNotFoundError, SpawnError, SpawnPermissionError
from mprisqueeze.player.process import SupervisedProcess, resolve_binary, spawn


class TestResolveBinary:
    """Tests for resolve_binary."""

    def test_finds_binary_on_path(self) -> None:
        """Known binaries resolve to an absolute path."""
        path = resolve_binary("sh")
        assert path is not None
        assert os.path.isabs(path)

    def test_unknown_binary(self) -> None:
        """Unknown names resolve to None."""
        assert resolve_binary("definitely-not-a-squeezelite-binary") is None


class TestSpawn:
    """Tests for spawn() and SupervisedProcess."""

    async def test_spawn_and_wait(self) -> None:
        """A process that exits cleanly reports status 0."""
        process = await spawn(["sh", "-c", "exit 0"])

        assert isinstance(process, SupervisedProcess)
        assert process.pid > 0
        assert await process.wait() == 0
        assert process.returncode == 0

    async def test_exit_status(self) -> None:
        """Non-zero exit statuses are reported unchanged."""
        process = await spawn(["sh", "-c", "exit 3"])
        assert await process.wait() == 3

    async def test_killed_by_signal(self) -> None:
        """Death by signal is reported as a negative status."""
        process = await spawn(["sh", "-c", "kill -TERM $$"])
        assert await process.wait() < 0

    async def test_returncode_while_running(self) -> None:
        """returncode is None until the process has exited."""
        process = await spawn(["sleep", "30"])
        try:
            assert process.returncode is None
        finally:
            os.kill(process.pid, signal.SIGKILL)
            await process.wait()

    async def test_argv_is_kept(self) -> None:
        """The original argv is kept for logging."""
        process = await spawn(["sh", "-c", "exit 0"])
        await process.wait()
        assert process.argv == ["sh", "-c", "exit 0"]
        assert "sh" in repr(process)

    async def test_binary_not_found(self) -> None:
        """A missing binary raises BinaryNotFoundError."""
        with pytest.raises(BinaryNotFoundError):
            await spawn(["definitely-not-a-squeezelite-binary", "-n", "Kitchen"])

    async def test_missing_path(self, tmp_path: Path) -> None:
        """A missing absolute path raises BinaryNotFoundError."""
        with pytest.raises(BinaryNotFoundError):
            await spawn([str(tmp_path / "squeezelite")])

    async def test_not_executable(self, tmp_path: Path) -> None:
        """An existing file without execute permission raises SpawnPermissionError."""
        binary = tmp_path / "squeezelite"
        binary.write_text("#!/bin/sh\nexit 0\n")
        binary.chmod(stat.S_IRUSR | stat.S_IWUSR)

        with pytest.raises(SpawnPermissionError):
            await spawn([str(binary), "-n", "Kitchen"])

    async def test_executable_path(self, tmp_path: Path) -> None:
        """An executable given by path is started."""
        binary = tmp_path / "squeezelite"
        binary.write_text("#!/bin/sh\nexit 5\n")
        binary.chmod(stat.S_IRWXU)

        process = await spawn([str(binary)])
        assert await process.wait() == 5

    async def test_empty_argv(self) -> None:
        """An empty command line is rejected."""
        with pytest.raises(SpawnError):
            await spawn([])

    def test_spawn_errors_share_base(self) -> None:
        """Both spawn failures are SpawnErrors."""
        assert issubclass(BinaryNotFoundError, SpawnError)
        assert issubclass(SpawnPermissionError, SpawnError)
