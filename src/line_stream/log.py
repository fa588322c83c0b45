"""日志配置。

line-stream 是测试辅助库，只在包自己的 logger（``line_stream``）上挂 handler，
不修改 root logger。
"""

from __future__ import annotations

import logging
import sys

from .config import Config, get_config

__all__ = ["setup_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# setup_logging 挂上的 handler，重复调用时替换而不是叠加
_installed_handler: logging.Handler | None = None


def setup_logging(config: Config | None = None) -> logging.Handler:
    """配置 line_stream 包的日志输出。

    LS_LOG_DEBUG 模式下输出到临时文件（DEBUG 级别），否则输出到 stderr（INFO 级别）。

    Args:
        config: 配置（默认使用全局配置）

    Returns:
        新挂上的 handler
    """
    global _installed_handler

    config = config or get_config()
    package_logger = logging.getLogger("line_stream")

    if _installed_handler is not None:
        package_logger.removeHandler(_installed_handler)
        _installed_handler.close()
        _installed_handler = None

    handler: logging.Handler
    if config.log_debug and config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.INFO

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)
    _installed_handler = handler

    return handler
