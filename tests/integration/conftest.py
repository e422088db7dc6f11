"""Integration test fixtures.

Tests here run a separate interpreter so that a real process exit (clean or
abrupt) sits between two cache sessions.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture()
def subprocess_env(cache_root: Path) -> dict[str, str]:
    """Environment pointing the child's Settings at an isolated cache root."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("SHADOWCACHE__")}
    env["SHADOWCACHE__CACHE__ROOT"] = str(cache_root)
    env["SHADOWCACHE__LOGGING__FORMAT"] = "json"
    return env
