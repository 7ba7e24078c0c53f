"""Fixtures for CLI tests."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from loguru import logger

from localimages.cli.console import reset_consoles
from localimages.constants import DATA_DIRNAME, DATA_FILENAME


@pytest.fixture(autouse=True)
def fresh_output(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Bind consoles to the runner's streams and drop stale log sinks."""
    monkeypatch.delenv("LOCALIMAGES_VAULT", raising=False)
    monkeypatch.delenv("LOCALIMAGES_LOG_DIR", raising=False)
    reset_consoles()
    yield
    reset_consoles()
    logger.remove()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def write_data(vault_dir: Path, data: dict[str, Any]) -> Path:
    path = vault_dir / DATA_DIRNAME / DATA_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def read_data(vault_dir: Path) -> dict[str, Any]:
    return json.loads((vault_dir / DATA_DIRNAME / DATA_FILENAME).read_text(encoding="utf-8"))
