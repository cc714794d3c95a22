"""Preset loading for lspcheck."""

import importlib
import importlib.util
import os
import sys
from typing import Any

from .scenario import Fixture


def load_preset(name_or_path: str) -> tuple[list[str], Fixture]:
    """
    Load preset by name or file path.

    Args:
        name_or_path: 'jabline' or './my_preset.py'

    Returns:
        (server_command, fixture)

    Raises:
        ModuleNotFoundError, FileNotFoundError, AttributeError, or
        whatever the preset module itself raises
    """
    # Path detection: contains '/' or ends in .py means external file
    if '/' in name_or_path or name_or_path.endswith('.py'):
        module = _load_from_file(name_or_path)
    else:
        module = _load_from_bundle(name_or_path)

    # Extract required exports
    get_server = getattr(module, 'get_server')
    get_fixture = getattr(module, 'get_fixture')

    return list(get_server()), get_fixture()


def _load_from_file(filepath: str) -> Any:
    """Load from external Python file using importlib.util."""
    abs_path = os.path.abspath(filepath)
    if not os.path.isfile(abs_path):
        raise FileNotFoundError(f"Cannot load preset from {filepath}")

    spec = importlib.util.spec_from_file_location("_preset_module", abs_path)
    if spec is None or spec.loader is None:
        raise FileNotFoundError(f"Cannot load preset from {filepath}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["_preset_module"] = module
    spec.loader.exec_module(module)
    return module


def _load_from_bundle(name: str) -> Any:
    """Load bundled preset by name."""
    return importlib.import_module(f"lspcheck.presets.{name}")
