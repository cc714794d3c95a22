"""Pytest fixtures: make the src/ tree importable, here and in subprocesses."""

import os
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parent.parent
src_dir = project_root / "src"
sys.path.insert(0, str(src_dir))

from lspcheck import util  # noqa: E402

MOCK_SERVER = Path(__file__).resolve().parent / "mock_server.py"


@pytest.fixture(autouse=True)
def subprocess_pythonpath(monkeypatch):
    """Let mock_server.py import lspcheck without an install."""
    existing = os.environ.get('PYTHONPATH')
    value = f"{src_dir}{os.pathsep}{existing}" if existing else str(src_dir)
    monkeypatch.setenv('PYTHONPATH', value)


@pytest.fixture(autouse=True)
def reset_log_level():
    yield
    util.set_log_level_from_string('warn')


@pytest.fixture
def mock_server_command():
    def make(*args: str) -> list[str]:
        return [sys.executable, str(MOCK_SERVER), *args]
    return make
