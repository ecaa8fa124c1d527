"""Pytest configuration.

Adds the repo's `src/` directory to `sys.path` so tests can import modules like
`config` and `store` without installing the project as a package.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_ENV_PREFIXES = ("DEVSPACE_PLUGIN_", "DEVENV_", "DEVTEL_", "TELEFORK_", "OUTREACH_TELEFORK_")


def pytest_configure() -> None:
    """Configure pytest before collecting/running tests."""
    src_dir = Path(__file__).resolve().parents[1] / "src"
    src_dir_str = str(src_dir)
    if src_dir_str not in sys.path:
        sys.path.insert(0, src_dir_str)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop devtel-related variables inherited from the developer's shell."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES) or name == "DEV_EMAIL":
            monkeypatch.delenv(name, raising=False)
    # `load_config()` reads `.env`; keep tests independent of a local one.
    monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """An empty log directory for a store under test."""
    path = tmp_path / "devtel"
    path.mkdir()
    return path
