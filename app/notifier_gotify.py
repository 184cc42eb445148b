"""
Gotify notifier: POST /message with an app token.

Env:
- GOTIFY_URL (e.g., http://nas:8080)
- GOTIFY_TOKEN (App token)
- GOTIFY_PRIORITY (1..10; default 5, ERROR and above are raised to at least 8)
- GOTIFY_MIN_LEVEL (DEBUG|INFO|WARNING|ERROR|CRITICAL; default WARNING)
"""

from __future__ import annotations
import logging
import os
import requests

from notifier import DEFAULT_APP_TAG, level_number

log = logging.getLogger("notifier")

ERROR_PRIORITY = 8


class GotifyNotifier:
    def __init__(self, url: str | None, token: str | None, min_level: str = "WARNING",
                 default_priority: int = 5, app_tag: str = DEFAULT_APP_TAG):
        self.url = url.rstrip("/") if url else None
        self.token = token.strip() if token else None
        self.min_level = level_number(min_level)
        self.default_priority = default_priority
        self.app_tag = app_tag

    @property
    def configured(self) -> bool:
        return bool(self.url and self.token)

    def priority_for(self, level: str) -> int:
        if level_number(level) >= logging.ERROR:
            return max(self.default_priority, ERROR_PRIORITY)
        return self.default_priority

    def send(self, level: str, title: str, message: str, extra: dict | None = None):
        if not self.configured or level_number(level) < self.min_level:
            return

        body = {
            "title": f"{self.app_tag}: {title}",
            "message": message if not extra else f"{message}\n\n{extra}",
            "priority": self.priority_for(level),
        }
        try:
            requests.post(f"{self.url}/message", json=body,
                          headers={"X-Gotify-Key": self.token}, timeout=5)
        except requests.RequestException as e:
            log.debug("Gotify send failed: %s", e)


def from_env() -> GotifyNotifier:
    return GotifyNotifier(
        os.getenv("GOTIFY_URL"),
        os.getenv("GOTIFY_TOKEN"),
        min_level=os.getenv("GOTIFY_MIN_LEVEL", "WARNING"),
        default_priority=int(os.getenv("GOTIFY_PRIORITY", "5")),
        app_tag=os.getenv("APP_TAG", DEFAULT_APP_TAG),
    )
