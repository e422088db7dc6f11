"""Unit-specific fixtures (filesystem confined to tmp_path)."""

from __future__ import annotations

import errno
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import structlog

from shadowcache.config import CacheSettings


class FakeDocument:
    """Minimal host document: a path plus a listener list."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.listeners: list = []

    def add_listener(self, listener) -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener) -> None:
        self.listeners.remove(listener)

    def rename(self, path: str) -> None:
        self.path = path
        for listener in list(self.listeners):
            listener.on_path_changed(self)

    def request_write(self, writer) -> None:
        for listener in list(self.listeners):
            listener.on_write_requested(self, writer)

    def request_replace(self, source: str) -> None:
        for listener in list(self.listeners):
            listener.on_replace_requested(self, source)


class FakeWriter:
    def __init__(self, content: str = "", *, fail: bool = False) -> None:
        self.content = content
        self.fail = fail
        self.target: str | None = None
        self.closed = False

    def set_target_path(self, path: str) -> None:
        self.target = path

    def write(self) -> None:
        if self.fail:
            raise OSError(errno.ENOSPC, "No space left on device")
        assert self.target is not None
        Path(self.target).write_text(self.content, encoding="utf-8")

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Settable UTC clock for deterministic backup names."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def cache_settings(tmp_path: Path) -> CacheSettings:
    return CacheSettings(root=str(tmp_path / "cache"))


@pytest.fixture()
def active_dir(cache_settings: CacheSettings) -> Path:
    path = cache_settings.active_path
    path.mkdir(parents=True)
    return path


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 15, 9, 26, tzinfo=UTC))


@pytest.fixture()
def make_document():
    return FakeDocument


@pytest.fixture()
def make_writer():
    return FakeWriter


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
