"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest import mock

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用的假 CLI 脚本
FAKE_CLI_PATH = PROJECT_ROOT / "tests" / "fixtures" / "fake_cli.py"

from line_stream.config import reload_config  # noqa: E402


@pytest.fixture
def fake_cli() -> list[str]:
    """启动假 CLI 的 argv 前缀。"""
    return [sys.executable, str(FAKE_CLI_PATH)]


@pytest.fixture(autouse=True)
def clean_config():
    """每个测试使用不含 LS_* 变量的干净配置。"""
    env = {k: v for k, v in os.environ.items() if not k.startswith("LS_")}
    with mock.patch.dict(os.environ, env, clear=True):
        reload_config()
        yield
    reload_config()
