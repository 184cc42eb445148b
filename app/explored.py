"""
Explored tracks and the enabled switch, both kept in the JsonStore.

- ExploredRegistry is a set of track ids: loaded once, saved after every change.
- EnabledFlag gates snapshot reading without stopping the poll loop.
- Old or broken values found on load are repaired and reported.
"""

from __future__ import annotations
import json
import logging
from typing import Iterator

log = logging.getLogger("explored")

NAMESPACE = "explore"
STATUS_KEY = f"{NAMESPACE}:status"
EXPLORED_KEY = f"{NAMESPACE}:explored"


def _parse(raw: str):
    try:
        return json.loads(raw)
    except ValueError:
        return None


class ExploredRegistry:
    def __init__(self, store):
        self.store = store
        self._ids: set[str] = set()

    def load(self) -> None:
        raw = self.store.get(EXPLORED_KEY)
        if raw is None:
            self._save()
            log.debug("Set initial explored tracks.")
            return

        parsed = _parse(raw)
        if not isinstance(parsed, list) or not all(isinstance(i, str) for i in parsed):
            self._ids = set()
            self._save()
            log.warning("Fixed old explored tracks (Previously: %s).", raw)
            return

        self._ids = set(parsed)
        if len(self._ids) != len(parsed):
            # Older files could hold the same id more than once.
            log.info("Dropped %d duplicate explored entries.", len(parsed) - len(self._ids))
            self._save()
        log.info("Loaded %d explored tracks.", len(self._ids))

    def _save(self) -> None:
        self.store.set(EXPLORED_KEY, json.dumps(sorted(self._ids)))

    def add(self, track_id: str) -> bool:
        """Add a track id; returns False (and writes nothing) if it was already there."""
        if track_id in self._ids:
            return False
        self._ids.add(track_id)
        self._save()
        return True

    def clear(self) -> None:
        log.info("Clearing explored tracks.")
        self._ids = set()
        self._save()

    def __contains__(self, track_id) -> bool:
        return track_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))


class EnabledFlag:
    def __init__(self, store, default: bool = True):
        self.store = store
        self.enabled = default

    def load(self) -> None:
        raw = self.store.get(STATUS_KEY)
        if raw is None:
            self._save()
            log.debug("Set initial status.")
            return

        parsed = _parse(raw)
        if isinstance(parsed, bool):
            self.enabled = parsed
        else:
            self._save()
            log.warning("Fixed old status (Previously: %s).", raw)

    def _save(self) -> None:
        self.store.set(STATUS_KEY, json.dumps(self.enabled))

    def set(self, value: bool) -> None:
        self.enabled = bool(value)
        self._save()
        log.info("Exploring %s.", "enabled" if self.enabled else "disabled")

    def toggle(self) -> bool:
        self.set(not self.enabled)
        return self.enabled


class DiscoveryGate:
    """Remembers tracks that crossed the listening threshold."""

    def __init__(self, registry: ExploredRegistry):
        self.registry = registry

    def mark(self, track_id: str) -> bool:
        if not self.registry.add(track_id):
            log.debug("Track already explored: %s", track_id)
            return False
        log.info("Marking track as explored: %s", track_id)
        return True
