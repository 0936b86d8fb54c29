"""
Command Sandbox — the pet's hands on the host.

When the model decides to run a shell command, this module handles the actual
execution. It's the boundary between "deciding to do something" and "doing it."

The sandbox enforces:
1. FILTERING: deny-listed commands are rejected before any process exists
2. TIMEOUT PROTECTION: no command can run forever; the whole process group
   is killed on expiry or cancellation
3. OUTPUT CAPPING: output beyond the byte budget is dropped and marked
4. ERROR REPORTING: failures carry whatever output was captured, so the
   model can see what went wrong

The sandbox keeps no state between runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import time
from typing import Awaitable, Callable, Optional

import structlog

from pipet.harness.safety import find_blocked_pattern

logger = structlog.get_logger(__name__)

TRUNCATION_MARKER = "\n... [output truncated]"

Spawn = Callable[[str], Awaitable[asyncio.subprocess.Process]]


class CommandError(RuntimeError):
    """A command was refused or did not complete cleanly."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class BlockedCommandError(CommandError):
    """The command matched the deny-list and was never started."""


class CommandTimeoutError(CommandError):
    """The command hit its deadline. ``output`` holds what was captured."""


class CommandFailedError(CommandError):
    """The command exited with a non-zero status."""

    def __init__(self, exit_code: int, output: str = ""):
        super().__init__(f"command failed with exit code {exit_code}", output)
        self.exit_code = exit_code


async def spawn_shell(command: str) -> asyncio.subprocess.Process:
    """Start ``sh -c command`` in its own session with stdout+stderr merged."""
    return await asyncio.create_subprocess_exec(
        "sh",
        "-c",
        command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        start_new_session=True,
    )


class _CappedBuffer:
    """Keeps the first ``limit`` bytes and remembers whether more arrived."""

    def __init__(self, limit: int):
        self._limit = limit
        self._data = bytearray()
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        room = self._limit - len(self._data)
        if room > 0:
            self._data += chunk[:room]
        if len(chunk) > max(room, 0):
            self.truncated = True

    def render(self) -> str:
        text = bytes(self._data).decode("utf-8", errors="replace")
        if self.truncated:
            text += TRUNCATION_MARKER
        return text


class CommandSandbox:
    """
    Runs one shell command at a time under a deny-list, deadline and output cap.

    ``spawn`` starts the process; it is injectable so tests can substitute a
    double and verify it is never reached for blocked commands.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_output_bytes: int = 10240,
        spawn: Optional[Spawn] = None,
    ):
        self._timeout = float(timeout)
        self._max_output_bytes = max(1, int(max_output_bytes))
        self._spawn = spawn or spawn_shell

        logger.info(
            "command_sandbox.initialized",
            timeout=self._timeout,
            max_output_bytes=self._max_output_bytes,
        )

    async def run(self, command: str) -> str:
        """
        Execute ``command`` and return its combined output.

        Raises:
            BlockedCommandError: deny-listed; no process was spawned.
            CommandTimeoutError: deadline hit; carries the partial output.
            CommandFailedError: non-zero exit; carries the output.
        """
        pattern = find_blocked_pattern(command)
        if pattern is not None:
            logger.warning("command_sandbox.blocked", pattern=pattern)
            raise BlockedCommandError(f"blocked command pattern: {pattern!r}")

        start_time = time.monotonic()
        proc = await self._spawn(command)
        buffer = _CappedBuffer(self._max_output_bytes)

        async def _communicate() -> int:
            await self._drain(proc.stdout, buffer)
            return await proc.wait()

        try:
            exit_code = await asyncio.wait_for(_communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc, buffer)
            logger.warning(
                "command_sandbox.timeout",
                timeout=self._timeout,
                truncated=buffer.truncated,
            )
            raise CommandTimeoutError(
                f"command timed out after {self._timeout:g}s", buffer.render()
            ) from None
        except asyncio.CancelledError:
            await self._terminate(proc, buffer)
            logger.info("command_sandbox.cancelled")
            raise

        output = buffer.render()
        elapsed = time.monotonic() - start_time
        logger.info(
            "command_sandbox.finished",
            exit_code=exit_code,
            elapsed=round(elapsed, 2),
            output_length=len(output),
            truncated=buffer.truncated,
        )

        if exit_code != 0:
            raise CommandFailedError(exit_code, output)
        return output

    @staticmethod
    async def _drain(stream: Optional[asyncio.StreamReader], buffer: _CappedBuffer) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                return
            buffer.feed(chunk)

    @classmethod
    async def _terminate(cls, proc: asyncio.subprocess.Process, buffer: _CappedBuffer) -> None:
        """
        Kill the command's whole process group and reap it.

        The pipe is read to EOF before waiting: a paused transport with a full
        buffer never sees the disconnect, and wait() would block forever.
        Anything read here lands in the capped buffer.
        """
        if proc.returncode is not None:
            return
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except OSError:
            # Not a group leader (custom spawn); fall back to the process itself
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
        await cls._drain(proc.stdout, buffer)
        await proc.wait()
