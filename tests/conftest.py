"""Shared pytest fixtures for sow tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from sow.cli import cli
from sow.persistence import SOW_DIR_NAME, default_config, write_config
from sow.registry import TypeRegistry, register_builtin_types


@pytest.fixture
def registry() -> TypeRegistry:
    """A private registry holding the built-in types."""
    return register_builtin_types(TypeRegistry())


@pytest.fixture
def sow_dir(tmp_path: Path) -> Path:
    """A tmp .sow/ directory with a default config.json and no project."""
    d = tmp_path / SOW_DIR_NAME
    d.mkdir()
    write_config(d, default_config())
    return d


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize .sow/ in tmp_path and return (runner, project_root)."""
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init"])
    assert result.exit_code == 0
    yield cli_runner, tmp_path
    os.chdir(original_cwd)
