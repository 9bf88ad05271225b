"""Pytest configuration and shared fixtures for layconf tests."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator

import pytest
import yaml
from layconf import Config, clear_system_property
from layconf.source import system_properties

from tests.data import buffer


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def config() -> Config:
    """Create a config with the network buffer spec registered."""
    config = Config("test")
    config.add_spec(buffer.spec)
    return config


@pytest.fixture
def strict_config() -> Config:
    """Create a config rejecting paths that match no item."""
    config = Config("strict", fail_on_unknown_path=True)
    config.add_spec(buffer.spec)
    return config


@pytest.fixture
def clean_system_properties() -> Iterator[None]:
    """Remove every system property set during the test."""
    before = set(system_properties())
    yield
    for key in set(system_properties()) - before:
        clear_system_property(key)


def write_yaml_file(file_path: Path, data: Dict[str, Any]) -> None:
    """Write data to YAML file.

    Args:
        file_path: Path to write file
        data: Data to write
    """
    with open(file_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False)


def write_json_file(file_path: Path, data: Dict[str, Any]) -> None:
    """Write data to JSON file."""
    with open(file_path, "w") as f:
        json.dump(data, f)


def set_env_vars(**env_vars: str) -> None:
    """Set environment variables.

    Args:
        **env_vars: Environment variables to set
    """
    for key, value in env_vars.items():
        os.environ[key] = value


def cleanup_env_vars(*var_names: str) -> None:
    """Clean up environment variables.

    Args:
        *var_names: Variable names to remove
    """
    for var_name in var_names:
        os.environ.pop(var_name, None)
