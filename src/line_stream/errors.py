"""line-stream 异常类。"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "LineStreamError",
    "ReadTimeoutError",
    "StreamStoppedError",
]


class LineStreamError(Exception):
    """line-stream 基础异常。"""
    pass


class StreamStoppedError(LineStreamError):
    """在已 stop 的流上读取。"""
    pass


class ReadTimeoutError(LineStreamError):
    """在读满指定行数之前到达 deadline。

    Attributes:
        argv: 被观察进程的启动参数
        line_count: 请求读取的行数
        lines: 超时前已收到的行（按输出顺序，可能为空）
        timeout: 本次读取的超时时间（秒）
    """

    def __init__(
        self,
        argv: Sequence[str],
        line_count: int,
        lines: list[str] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.argv = list(argv)
        self.line_count = line_count
        self.lines = lines if lines is not None else []
        self.timeout = timeout
        super().__init__(
            f"cmd [{' '.join(self.argv)}] timed out trying to read {line_count} lines"
        )
