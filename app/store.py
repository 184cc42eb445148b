"""
Persistent key/value store backed by a single JSON file.

- Values are strings; callers decide how to encode them (JSON, mostly).
- Loaded once on construction, rewritten atomically after every set().
- An unreadable or corrupt file is logged and treated as empty.
"""

from __future__ import annotations
import json
import logging
import os
import threading
from typing import Dict

log = logging.getLogger("store")


class JsonStore:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}
        self._load()

    # -------- persistence --------
    def _load(self) -> None:
        try:
            if os.path.isfile(self.path):
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._data = {k: v for k, v in data.items() if isinstance(v, str)}
                else:
                    log.warning("Ignoring store %s: expected an object, got %s",
                                self.path, type(data).__name__)
        except (OSError, ValueError) as e:
            log.warning("Could not read store %s, starting empty: %s", self.path, e)
            self._data = {}

    def _save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # Write atomically to avoid corruption
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    # -------- public API --------
    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._save()
