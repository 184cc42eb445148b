"""
Alerts: push WARNING-and-above log records to the user.

- Notifier POSTs a JSON body to NOTIFY_WEBHOOK_URL (Slack/Discord-style hooks work).
- AlertHandler is a logging.Handler that fans records out to any notifiers.
- Delivery is best-effort: failures are logged at DEBUG and never raised.
"""

from __future__ import annotations
import logging
import os
import requests

DEFAULT_APP_TAG = "BluOS Explore"

log = logging.getLogger("notifier")


def level_number(name: str | None, default: int = logging.WARNING) -> int:
    value = logging.getLevelName((name or "").upper())
    return value if isinstance(value, int) else default


class Notifier:
    def __init__(self, webhook_url: str | None, min_level: str = "WARNING", app_tag: str = DEFAULT_APP_TAG):
        self.webhook_url = webhook_url.strip() if webhook_url else None
        self.min_level = level_number(min_level)
        self.app_tag = app_tag

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    def send(self, level: str, title: str, message: str, extra: dict | None = None):
        if not self.configured or level_number(level) < self.min_level:
            return

        payload = {
            "level": level.upper(),
            "title": f"{self.app_tag}: {title}",
            "message": message,
            "extra": extra or {},
        }
        try:
            requests.post(self.webhook_url, json=payload, timeout=5)
        except requests.RequestException as e:
            log.debug("Notification send failed: %s", e)


class AlertHandler(logging.Handler):
    """Forwards log records to notifiers. Records from the notifier logger are
    never forwarded, so a broken hook can't feed itself."""

    def __init__(self, *notifiers, level: int = logging.WARNING):
        super().__init__(level=level)
        self.notifiers = [n for n in notifiers if n.configured]

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == log.name or not self.notifiers:
            return
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        extra = {"logger": record.name}
        for notifier in self.notifiers:
            notifier.send(record.levelname, record.levelname.title(), message, extra)


def from_env() -> Notifier:
    return Notifier(
        webhook_url=os.getenv("NOTIFY_WEBHOOK_URL"),
        min_level=os.getenv("NOTIFY_MIN_LEVEL", "WARNING"),
        app_tag=os.getenv("APP_TAG", DEFAULT_APP_TAG),
    )
