"""Runtime module for line-stream.

This module provides:
- LineStream: bounded, time-limited line reads from a running process
- OutputPipe / start_stream: process start-up with a cancelable output pipe
"""

from .line_stream import LineOutput, LineStream, ProcessHandle
from .process_runner import OutputPipe, ProcessSpec, start_stream

__all__ = [
    "LineOutput",
    "LineStream",
    "OutputPipe",
    "ProcessHandle",
    "ProcessSpec",
    "start_stream",
]
