"""
Shared fixtures and test doubles.

No real player, network or files: the provider is scripted, the clock is
driven by hand and the store lives in memory.
"""

import pytest

from bluos import RawSnapshot
from explored import EnabledFlag, ExploredRegistry


def raw(track_id="A", ts=0, paused=False, position_ms=0):
    return RawSnapshot(track_id=track_id, paused=paused, position_ms=position_ms, timestamp_ms=ts)


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


class ScriptedProvider:
    """Returns (or raises) the scripted items in order, then repeats the last one."""

    def __init__(self, *items):
        self.items = list(items)
        self.calls = 0

    def read(self):
        item = self.items[min(self.calls, len(self.items) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


class RecordingController:
    def __init__(self, error=None):
        self.skips = 0
        self.error = error

    def next(self):
        self.skips += 1
        if self.error is not None:
            raise self.error


class MemoryStore:
    def __init__(self, data=None):
        self.data = dict(data or {})
        self.writes = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        self.writes.append((key, value))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store):
    reg = ExploredRegistry(store)
    reg.load()
    return reg


@pytest.fixture
def flag(store):
    f = EnabledFlag(store)
    f.load()
    return f


@pytest.fixture
def controller():
    return RecordingController()
