"""Process start-up for LineStream.

line-stream runtime module

This module provides:
- OutputPipe: a cancelable line reader over a pipe descriptor
- start_stream: spawn a process with its output on an OutputPipe and wrap it
  in a LineStream

Key design points:
- stdout (and stderr when combined) go to an os.pipe() we own, read through
  loop.connect_read_pipe; closing the transport feeds end of stream to the
  reader, so stop() reliably unblocks a pending readline()
- POSIX: start_new_session=True so stop() can kill the whole process group
- stdin is DEVNULL so the child never inherits the test runner's stdin
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO

from .line_stream import LineStream

__all__ = [
    "OutputPipe",
    "ProcessSpec",
    "start_stream",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Longest line accepted by readline(), same as asyncio's default
DEFAULT_LINE_LIMIT = 2**16


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a process to observe.

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory for the process (None = inherit)
        env: Environment variables (None = inherit parent)
        combine_stderr: Send stderr to the same pipe as stdout
            (otherwise stderr goes to DEVNULL)
        new_session: Start the process in its own session/process group
    """

    argv: list[str]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    combine_stderr: bool = True
    new_session: bool = True


class OutputPipe:
    """Line reader over the read end of a pipe.

    close() is safe to call while a readline() is pending: the pending call
    returns b"" (end of stream).
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        transport: asyncio.ReadTransport,
    ) -> None:
        self._reader = reader
        self._transport = transport

    @classmethod
    async def connect(
        cls,
        pipe: int | BinaryIO,
        *,
        limit: int = DEFAULT_LINE_LIMIT,
    ) -> OutputPipe:
        """Attach a pipe to the running event loop.

        Args:
            pipe: Read end of a pipe, as a descriptor or binary file object.
                Ownership passes to the OutputPipe.
            limit: Longest line readline() accepts

        Returns:
            Connected OutputPipe
        """
        loop = asyncio.get_running_loop()
        if isinstance(pipe, int):
            pipe = os.fdopen(pipe, "rb", buffering=0)

        reader = asyncio.StreamReader(limit=limit)
        protocol = asyncio.StreamReaderProtocol(reader)
        try:
            transport, _ = await loop.connect_read_pipe(lambda: protocol, pipe)
        except BaseException:
            pipe.close()
            raise
        return cls(reader, transport)

    @property
    def closed(self) -> bool:
        return self._transport.is_closing()

    async def readline(self) -> bytes:
        """Read one line including its newline; b"" at end of stream."""
        return await self._reader.readline()

    def close(self) -> None:
        """Close the pipe. Idempotent."""
        self._transport.close()


def _build_subprocess_kwargs(spec: ProcessSpec) -> dict[str, Any]:
    """Build platform-specific subprocess kwargs.

    Args:
        spec: Process specification

    Returns:
        Dict of kwargs for asyncio.create_subprocess_exec
    """
    kwargs: dict[str, Any] = {}

    if spec.cwd is not None:
        kwargs["cwd"] = spec.cwd

    if spec.env is not None:
        kwargs["env"] = dict(spec.env)

    if spec.new_session:
        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

    return kwargs


async def start_stream(
    spec: ProcessSpec,
    *,
    log: logging.Logger | None = None,
    limit: int = DEFAULT_LINE_LIMIT,
    encoding: str | None = None,
) -> LineStream:
    """Start a process and return a LineStream over its output.

    Args:
        spec: Process specification
        log: Diagnostic sink handed to the LineStream
        limit: Longest line the stream accepts
        encoding: Output encoding (default from config)

    Returns:
        Active LineStream owning the process and its output

    Raises:
        OSError: The process could not be started
        NotImplementedError: On Windows, where anonymous pipes cannot be read
            asynchronously
    """
    if IS_WINDOWS:
        raise NotImplementedError("start_stream requires a POSIX event loop")

    read_fd, write_fd = os.pipe()
    try:
        process = await asyncio.create_subprocess_exec(
            *spec.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=write_fd,
            stderr=write_fd if spec.combine_stderr else asyncio.subprocess.DEVNULL,
            **_build_subprocess_kwargs(spec),
        )
    except BaseException:
        os.close(read_fd)
        raise
    finally:
        # The child holds its own copy; ours would keep the pipe from ever
        # reaching end of stream
        os.close(write_fd)

    logger.debug(
        f"Started subprocess pid={process.pid} "
        f"argv={spec.argv[0]} cwd={spec.cwd}"
    )

    try:
        output = await OutputPipe.connect(read_fd, limit=limit)
    except BaseException:
        process.kill()
        raise

    return LineStream(
        process,
        output,
        spec.argv,
        kill_group=spec.new_session,
        encoding=encoding,
        log=log,
    )
