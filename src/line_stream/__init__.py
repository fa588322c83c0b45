"""line-stream - 观察运行中进程输出的集成测试辅助库。

在读满指定行数或超时（以先到者为准）时返回，不会无限阻塞。

环境变量:
    LS_READ_TIMEOUT: read_until 的默认超时（默认 5.0 秒）
    LS_KILL_TIMEOUT: wait_stopped 的默认等待时间（默认 1.0 秒）
    LS_ENCODING: 输出解码编码（默认 utf-8）
    LS_LOG_DEBUG: 日志调试模式（默认 false）

用法:
    stream = await start_stream(ProcessSpec(argv=["my-server"]))
    try:
        lines = await stream.read_until(2, timeout=1.0)
    finally:
        stream.stop()
"""

__version__ = "0.1.0"

from .config import Config, get_config, load_config, reload_config
from .errors import LineStreamError, ReadTimeoutError, StreamStoppedError
from .log import setup_logging
from .runtime import LineStream, OutputPipe, ProcessSpec, start_stream

__all__ = [
    "__version__",
    "Config",
    "LineStream",
    "LineStreamError",
    "OutputPipe",
    "ProcessSpec",
    "ReadTimeoutError",
    "StreamStoppedError",
    "get_config",
    "load_config",
    "reload_config",
    "setup_logging",
    "start_stream",
]
