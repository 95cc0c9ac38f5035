"""
Shared pytest fixtures for roster tests.

Provides controllable clocks and a backend wrapper that can be told to
fail, so tests never depend on wall-clock time or a broken disk.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from roster.api import Directory


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TickingTimestamps:
    """UTC timestamp source that moves one second per call."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)):
        self._next = start

    def __call__(self) -> str:
        ts = self._next.strftime("%Y-%m-%dT%H:%M:%S.%f")
        self._next += timedelta(seconds=1)
        return ts


class FailingStore:
    """Backend wrapper whose writes raise while `fail` is set."""

    WRITE_METHODS = frozenset({
        "upsert_member", "delete_member", "insert_note", "delete_notes", "set",
    })

    def __init__(self, real_store):
        self._real = real_store
        self.fail = False
        self.write_calls = 0

    def __getattr__(self, name):
        attr = getattr(self._real, name)
        if name not in self.WRITE_METHODS:
            return attr

        def write(*args, **kwargs):
            self.write_calls += 1
            if self.fail:
                raise OSError("disk I/O error (simulated)")
            return attr(*args, **kwargs)

        return write


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def timestamps():
    return TickingTimestamps()


@pytest.fixture
def failing_store():
    """Wrap a real backend so its writes can be switched to fail."""
    return FailingStore


@pytest.fixture
def make_directory(tmp_path: Path, clock, timestamps):
    """Factory for Directory instances on tmp_path; all are closed at teardown."""
    opened = []

    def _make(**kwargs) -> Directory:
        kwargs.setdefault("clock", timestamps)
        kwargs.setdefault("monotonic", clock)
        d = Directory(tmp_path / "store", **kwargs)
        opened.append(d)
        return d

    yield _make
    for d in opened:
        d.close()


@pytest.fixture
def directory(make_directory) -> Directory:
    """A fresh, empty Directory on tmp_path."""
    return make_directory()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow"
    )
