"""Bounded, time-limited line reads from a running process.

line-stream runtime module

LineStream wraps a started process and a readable handle on its output.
``read_until`` collects lines until a count is reached or a deadline expires;
``stop`` closes the output and kills the process.

Key design points:
- One pump task per read_until call, forwarding lines through a
  zero-capacity anyio memory stream (the consumer is never more than one line
  behind the producer)
- Deadline enforced with anyio.move_on_after
- The pump is never cancelled mid-read; it exits after observing the stop
  signal, the closed channel, or end of stream (stop() closing the output
  feeds end of stream to a blocked read)
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Sequence
from typing import Protocol

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from ..config import get_config
from ..errors import ReadTimeoutError, StreamStoppedError

__all__ = [
    "LineStream",
    "LineOutput",
    "ProcessHandle",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


class LineOutput(Protocol):
    """Readable, closable output handle of a process."""

    async def readline(self) -> bytes: ...

    def close(self) -> None: ...


class ProcessHandle(Protocol):
    """The parts of ``asyncio.subprocess.Process`` LineStream relies on."""

    pid: int
    returncode: int | None

    def kill(self) -> None: ...

    async def wait(self) -> int: ...


class LineStream:
    """Observe the output of a running process line by line.

    The stream exclusively owns both handles. Only one read_until call may be
    in progress at a time.

    Example:
        stream = await start_stream(ProcessSpec(argv=["my-server", "--verbose"]))
        try:
            lines = await stream.read_until(3, timeout=2.0)
        finally:
            stream.stop()
    """

    def __init__(
        self,
        process: ProcessHandle,
        output: LineOutput,
        argv: Sequence[str],
        *,
        kill_group: bool = False,
        encoding: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        """Wrap an already started process.

        Args:
            process: Process handle (killed by stop())
            output: Output handle (closed by stop())
            argv: Invocation arguments, used in error messages
            kill_group: Kill the process group instead of the process (POSIX,
                for processes started in their own session)
            encoding: Output encoding (default from config)
            log: Diagnostic sink for lifecycle and cleanup messages
                (default: module logger)
        """
        self.process = process
        self.output = output
        self.argv = list(argv)
        self.encoding = encoding or get_config().encoding
        self._log = log if log is not None else logger
        # Only a group leader's group is ours to kill
        self.kill_group = kill_group and not IS_WINDOWS and self._leads_group()

        self._stopped = False
        self._pumps: set[asyncio.Task[None]] = set()
        self._last_pump: asyncio.Task[None] | None = None

    @property
    def command(self) -> str:
        """The invocation arguments joined by spaces."""
        return " ".join(self.argv)

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def active_pumps(self) -> int:
        """Number of pump tasks that have not exited yet."""
        return sum(1 for task in self._pumps if not task.done())

    async def read_until(
        self,
        line_count: int,
        timeout: float | None = None,
    ) -> list[str]:
        """Read output lines until line_count lines arrive or timeout expires.

        Args:
            line_count: Number of lines to collect (>= 1)
            timeout: Seconds to wait in total (default from config)

        Returns:
            Exactly line_count lines, in output order

        Raises:
            ReadTimeoutError: The deadline expired first. The lines collected
                so far are available as ``error.lines``. End of stream before
                line_count also ends this way, once the deadline expires.
            StreamStoppedError: stop() was already called
            ValueError: line_count < 1 or timeout <= 0
        """
        if self._stopped:
            raise StreamStoppedError(f"cmd [{self.command}] stream already stopped")
        if line_count < 1:
            raise ValueError(f"line_count must be >= 1, got {line_count}")
        if timeout is None:
            timeout = get_config().read_timeout
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        lines: list[str] = []
        send, receive = anyio.create_memory_object_stream[str](0)
        stop_signal = anyio.Event()

        pump = asyncio.create_task(
            self._pump(send, stop_signal, self._last_pump),
            name=f"line-stream-pump:{self.process.pid}",
        )
        self._pumps.add(pump)
        pump.add_done_callback(self._pumps.discard)
        self._last_pump = pump

        try:
            with anyio.move_on_after(timeout):
                async for line in receive:
                    lines.append(line)
                    if len(lines) >= line_count:
                        return lines

                self._log.debug(
                    f"Output of pid={self.process.pid} ended after "
                    f"{len(lines)}/{line_count} lines, waiting for deadline"
                )
                await anyio.sleep_forever()
        finally:
            stop_signal.set()
            receive.close()

        raise ReadTimeoutError(self.argv, line_count, lines, timeout)

    async def _pump(
        self,
        send: MemoryObjectSendStream[str],
        stop_signal: anyio.Event,
        previous: asyncio.Task[None] | None,
    ) -> None:
        """Forward output lines to the consumer until told to stop.

        Args:
            send: Handoff channel to the consumer
            stop_signal: Set by the consumer once it is done
            previous: Pump of the previous read_until call, if any
        """
        # A pump left blocked on a read by an earlier call must finish first;
        # asyncio stream readers allow a single waiter.
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        async with send:
            while not stop_signal.is_set():
                try:
                    raw = await self.output.readline()
                except (ValueError, OSError) as e:
                    self._log.warning(
                        f"Stopped reading output of pid={self.process.pid}: {e}"
                    )
                    return

                if not raw:
                    return

                try:
                    await send.send(self._decode(raw))
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    # Consumer already returned; the line is discarded
                    return

    def _decode(self, raw: bytes) -> str:
        line = raw.decode(self.encoding, errors="replace")
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        return line

    def stop(self) -> None:
        """Close the output, then kill the process.

        Never raises: failures are reported to the diagnostic logger. The
        kill is attempted even when closing the output fails. Calling stop()
        again does nothing.
        """
        if self._stopped:
            return
        self._stopped = True

        pid = self.process.pid
        self._log.debug(f"Stopping pid={pid} cmd=[{self.command}]")

        try:
            self.output.close()
        except Exception as e:
            self._log.error(f"Failed to close stream of pid={pid}: {e}")

        try:
            self._kill()
        except ProcessLookupError:
            what = "Process group" if self.kill_group else "Process"
            self._log.debug(f"{what} already exited pid={pid}")
        except Exception as e:
            self._log.error(f"Failed to kill process pid={pid}: {e}")

    def _kill(self) -> None:
        """Force kill the process, or its whole group when kill_group is set.

        The group is killed even after the leader exited: its pid stays the
        pgid, and other members may still hold the output pipe.
        """
        if self.kill_group:
            os.killpg(self.process.pid, signal.SIGKILL)
            self._log.debug(f"Sent SIGKILL to process group pgid={self.process.pid}")
            return

        if self.process.returncode is not None:
            self._log.debug(
                f"Process already exited pid={self.process.pid} "
                f"returncode={self.process.returncode}"
            )
            return

        self.process.kill()

    def _leads_group(self) -> bool:
        """Whether the process is the leader of its own process group."""
        try:
            return os.getpgid(self.process.pid) == self.process.pid
        except OSError as e:
            self._log.debug(f"getpgid failed for pid={self.process.pid}: {e}")
            return False

    async def wait_stopped(self, timeout: float | None = None) -> int | None:
        """Stop the stream and wait for the pumps and the process to finish.

        Args:
            timeout: Seconds to wait (default from config)

        Returns:
            The process return code, or None if it did not exit in time
        """
        self.stop()
        if timeout is None:
            timeout = get_config().kill_timeout

        with anyio.move_on_after(timeout):
            if self._pumps:
                await asyncio.wait(list(self._pumps))
            await self.process.wait()

        if self.active_pumps:
            self._log.warning(
                f"{self.active_pumps} pump task(s) still running for pid={self.process.pid}"
            )
        if self.process.returncode is None:
            self._log.warning(f"Process did not exit after kill pid={self.process.pid}")

        return self.process.returncode

    async def __aenter__(self) -> LineStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.wait_stopped()

    def __repr__(self) -> str:
        state = "stopped" if self._stopped else "active"
        return f"LineStream(pid={self.process.pid}, cmd=[{self.command}], {state})"
