import logging
import time
import requests
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable

log = logging.getLogger("bluos")

# States in which BluOS is producing sound.
PLAYING_STATES = ("play", "stream")


class BluOSError(Exception):
    """Player unreachable, answered with an HTTP error, or sent unparsable XML."""


@dataclass(frozen=True)
class RawSnapshot:
    track_id: str | None
    paused: bool | None
    position_ms: int | None
    timestamp_ms: int | None  # when the player last registered an event
    title: str | None = None
    artist: str | None = None


class BluOSClient:
    """
    BluOS player as seen by the explorer: /Status for state, /Skip to advance.

    BluOS has no event clock of its own, so the client keeps one: every time the
    status fingerprint (the <status etag="..."> attribute, or track + state when
    the player sends no etag) changes, the event is stamped with clock(). The stamp
    stays put until the next change, which is what the progress accounting relies on.
    """
    def __init__(self, host: str, port: int = 11000, timeout: int = 5,
                 clock: Callable[[], int] | None = None):
        self.base = f"http://{host}:{port}"
        self.timeout = timeout
        self.clock = clock or (lambda: int(time.monotonic() * 1000))
        self._fingerprint = None
        self._event_ms: int | None = None

    def _findtext_any(self, root: ET.Element, *tags: str):
        for t in tags:
            el = root.find(f".//{t}")
            if el is not None and el.text:
                return el.text.strip()
        return None

    def _to_int(self, s):
        if s is None: return None
        try:
            return int(float(s))
        except (ValueError, OverflowError):
            return None

    def _get(self, path: str) -> requests.Response:
        try:
            resp = requests.get(f"{self.base}{path}", timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise BluOSError(f"GET {path} failed: {e}") from e
        return resp

    def is_ready(self) -> bool:
        try:
            self._get("/SyncStatus")
        except BluOSError as e:
            log.debug("Player not ready: %s", e)
            return False
        return True

    def read(self) -> RawSnapshot | None:
        resp = self._get("/Status")
        try:
            root = ET.fromstring(resp.text)
        except ET.ParseError as e:
            raise BluOSError(f"Unparsable /Status XML: {e}") from e

        title  = self._findtext_any(root, "name", "title1", "title")
        artist = self._findtext_any(root, "artist", "title2")
        album  = self._findtext_any(root, "album", "title3")
        fn     = self._findtext_any(root, "fn", "streamUrl")

        if fn:
            track_id = fn
        elif title:
            track_id = "|".join(part or "" for part in (artist, album, title))
        else:
            track_id = None

        if track_id is None:
            # Nothing loaded; forget the last event so the next track starts fresh.
            self._fingerprint = None
            self._event_ms = None
            return None

        state = self._findtext_any(root, "state")
        state = state.lower() if state else None
        secs = self._to_int(self._findtext_any(root, "secs"))

        fingerprint = root.get("etag") or (track_id, state)
        if fingerprint != self._fingerprint:
            self._fingerprint = fingerprint
            self._event_ms = self.clock()
            log.debug("Player event: etag=%s state=%s secs=%s", root.get("etag"), state, secs)

        return RawSnapshot(
            track_id=track_id,
            paused=None if state is None else state not in PLAYING_STATES,
            position_ms=None if secs is None else secs * 1000,
            timestamp_ms=self._event_ms,
            title=title,
            artist=artist,
        )

    def next(self) -> None:
        self._get("/Skip")
