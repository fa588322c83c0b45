"""line-stream 环境变量配置管理。

环境变量:
    LS_READ_TIMEOUT: read_until 的默认超时（秒）
        - 默认 5.0
        - 限制在 0.01-600 秒范围，无效值使用默认值

    LS_KILL_TIMEOUT: wait_stopped 等待进程退出的默认时间（秒）
        - 默认 1.0
        - 限制在 0.01-60 秒范围，无效值使用默认值

    LS_ENCODING: 解码进程输出使用的编码
        - 默认 utf-8

    LS_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import codecs
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_READ_TIMEOUT = 5.0
DEFAULT_KILL_TIMEOUT = 1.0
DEFAULT_ENCODING = "utf-8"


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_seconds(
    value: str | None,
    default: float,
    minimum: float,
    maximum: float,
) -> float:
    """解析秒数环境变量，并限制在 [minimum, maximum] 范围。"""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    if seconds != seconds:  # NaN
        return default
    return max(minimum, min(seconds, maximum))


def _parse_encoding(value: str | None) -> str:
    """解析编码名称，未知编码回退到 utf-8。"""
    if not value or not value.strip():
        return DEFAULT_ENCODING
    try:
        return codecs.lookup(value.strip()).name
    except LookupError:
        return DEFAULT_ENCODING


@dataclass
class Config:
    """line-stream 配置。

    Attributes:
        read_timeout: read_until 的默认超时（秒）
        kill_timeout: wait_stopped 的默认等待时间（秒）
        encoding: 输出解码编码
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    read_timeout: float = DEFAULT_READ_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    encoding: str = DEFAULT_ENCODING
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(read_timeout={self.read_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"encoding={self.encoding}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "line-stream"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"ls_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("LS_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        read_timeout=_parse_seconds(
            os.environ.get("LS_READ_TIMEOUT"), DEFAULT_READ_TIMEOUT, 0.01, 600.0
        ),
        kill_timeout=_parse_seconds(
            os.environ.get("LS_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT, 0.01, 60.0
        ),
        encoding=_parse_encoding(os.environ.get("LS_ENCODING")),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
