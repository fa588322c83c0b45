"""Config 模块测试。

测试 LS_* 环境变量解析和配置管理。
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from line_stream.config import (
    DEFAULT_KILL_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    Config,
    get_config,
    load_config,
    reload_config,
)


class TestDefaults:
    """测试默认配置。"""

    def test_defaults(self):
        """未设置任何 LS_* 变量时使用默认值。"""
        config = load_config()
        assert config.read_timeout == DEFAULT_READ_TIMEOUT
        assert config.kill_timeout == DEFAULT_KILL_TIMEOUT
        assert config.encoding == "utf-8"
        assert config.log_debug is False
        assert config.log_file is None


class TestParseTimeouts:
    """测试超时时间解析。"""

    def test_read_timeout(self):
        with mock.patch.dict(os.environ, {"LS_READ_TIMEOUT": "2.5"}):
            assert load_config().read_timeout == 2.5

    def test_kill_timeout(self):
        with mock.patch.dict(os.environ, {"LS_KILL_TIMEOUT": "0.3"}):
            assert load_config().kill_timeout == 0.3

    @pytest.mark.parametrize("value", ["abc", "", "nan"])
    def test_invalid_values_use_default(self, value: str):
        """无效值使用默认值。"""
        with mock.patch.dict(os.environ, {"LS_READ_TIMEOUT": value}):
            assert load_config().read_timeout == DEFAULT_READ_TIMEOUT

    def test_clamped_to_minimum(self):
        """非正数被限制到最小值。"""
        with mock.patch.dict(os.environ, {"LS_READ_TIMEOUT": "-3", "LS_KILL_TIMEOUT": "0"}):
            config = load_config()
            assert config.read_timeout == 0.01
            assert config.kill_timeout == 0.01

    def test_clamped_to_maximum(self):
        with mock.patch.dict(os.environ, {"LS_READ_TIMEOUT": "99999", "LS_KILL_TIMEOUT": "99999"}):
            config = load_config()
            assert config.read_timeout == 600.0
            assert config.kill_timeout == 60.0


class TestParseEncoding:
    """测试编码解析。"""

    def test_normalized(self):
        """编码名称被规范化。"""
        with mock.patch.dict(os.environ, {"LS_ENCODING": " Latin-1 "}):
            assert load_config().encoding == "iso8859-1"

    def test_unknown_encoding_falls_back(self):
        with mock.patch.dict(os.environ, {"LS_ENCODING": "no-such-codec"}):
            assert load_config().encoding == "utf-8"


class TestParseBool:
    """测试布尔值解析。"""

    @pytest.mark.parametrize("value", ["true", "True", "TRUE", "1", "yes", "Yes", "on"])
    def test_truthy_values(self, value: str):
        """真值。"""
        with mock.patch.dict(os.environ, {"LS_LOG_DEBUG": value}):
            config = load_config()
            assert config.log_debug is True

    @pytest.mark.parametrize("value", ["false", "False", "0", "no", "off", ""])
    def test_falsy_values(self, value: str):
        """假值。"""
        with mock.patch.dict(os.environ, {"LS_LOG_DEBUG": value}):
            config = load_config()
            assert config.log_debug is False
            assert config.log_file is None


class TestLogFile:
    """测试调试日志文件路径。"""

    def test_log_file_generated(self):
        """LS_LOG_DEBUG 开启时在临时目录下生成日志路径。"""
        with mock.patch.dict(os.environ, {"LS_LOG_DEBUG": "1"}):
            config = load_config()

        assert config.log_file is not None
        log_file = Path(config.log_file)
        assert log_file.is_absolute()
        assert log_file.parent.name == "line-stream"
        assert log_file.name.startswith("ls_debug_")
        assert log_file.suffix == ".log"


class TestGlobalConfig:
    """测试全局配置实例。"""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reload_config(self):
        """reload_config 重新读取环境变量。"""
        first = get_config()
        with mock.patch.dict(os.environ, {"LS_READ_TIMEOUT": "7"}):
            second = reload_config()

        assert second is not first
        assert second.read_timeout == 7.0
        assert get_config() is second

    def test_repr(self):
        config = Config(read_timeout=1.5)
        assert "read_timeout=1.5" in repr(config)
        assert "encoding=utf-8" in repr(config)
