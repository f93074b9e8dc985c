"""Shared pytest fixtures."""

from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty workspace directory."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
