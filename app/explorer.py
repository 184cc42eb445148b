import logging
import time
from collections import deque
from typing import Callable

from bluos import BluOSError
from explored import DiscoveryGate, EnabledFlag, ExploredRegistry
from state import LoopState, advance, read_snapshot

log = logging.getLogger("explore")

TOGGLE = "toggle"
CLEAR = "clear"


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class SkipController:
    def __init__(self, controller):
        self.controller = controller

    def skip_next(self) -> None:
        # Fire and forget: a failed skip looks like any other playback change.
        try:
            self.controller.next()
        except BluOSError as e:
            log.warning("Skip failed: %s", e)


class Explorer:
    """Poll loop that accrues listening time and acts on discoveries.

    All loop state lives in self.state and is replaced once per cycle.
    Commands from outside (signals, mostly) are queued and applied at the
    start of the next cycle.
    """

    def __init__(self, provider, controller, registry: ExploredRegistry, flag: EnabledFlag, *,
                 threshold_ms: int = 30_000, interval_ms: int = 100,
                 clock: Callable[[], int] = monotonic_ms,
                 sleep: Callable[[float], None] = time.sleep):
        self.provider = provider
        self.registry = registry
        self.flag = flag
        self.gate = DiscoveryGate(registry)
        self.skipper = SkipController(controller)
        self.threshold_ms = threshold_ms
        self.interval_ms = interval_ms
        self.clock = clock
        self.sleep = sleep
        self.state = LoopState()
        self.running = False
        self.unreachable_since: int | None = None
        self._commands: deque[str] = deque()

    # -------- commands --------
    def request(self, command: str) -> None:
        """Queue a command; safe to call from a signal handler."""
        self._commands.append(command)

    def _apply_commands(self) -> None:
        while self._commands:
            command = self._commands.popleft()
            if command == TOGGLE:
                self.flag.toggle()
            elif command == CLEAR:
                self.registry.clear()
            else:
                log.warning("Ignoring unknown command: %s", command)

    # -------- loop --------
    def cycle(self) -> None:
        self._apply_commands()

        try:
            raw = self.provider.read()
        except BluOSError as e:
            # Skip the cycle entirely; the next good poll picks up where we left off.
            # Warn once per outage; repeats go to debug.
            if self.unreachable_since is None:
                self.unreachable_since = self.clock()
                log.warning("Player status fetch failed: %s", e)
            else:
                log.debug("Player status fetch failed again: %s", e)
            return

        if self.unreachable_since is not None:
            log.info("Player reachable again after %.1fs.",
                     (self.clock() - self.unreachable_since) / 1000)
            self.unreachable_since = None

        current = read_snapshot(raw, self.flag.enabled)
        self.state, outcome = advance(
            self.state, current, now_ms=self.clock(), threshold_ms=self.threshold_ms
        )

        if outcome.discovered is not None:
            self.gate.mark(outcome.discovered)

        if outcome.entered is not None and outcome.entered in self.registry:
            log.info("New track has been explored, skipping: %s", outcome.entered)
            self.skipper.skip_next()

    def run(self) -> None:
        self.running = True
        log.info("Exploring. Threshold: %ss, poll interval: %sms",
                 self.threshold_ms / 1000, self.interval_ms)
        while self.running:
            self.cycle()
            self.sleep(self.interval_ms / 1000)

    def stop(self) -> None:
        self.running = False


def _mmss(ms: int) -> str:
    seconds = ms // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def print_states(provider, *, interval_ms: int = 100,
                 sleep: Callable[[float], None] = time.sleep) -> None:
    """Debug helper: log every raw player state until interrupted."""
    while True:
        try:
            raw = provider.read()
        except BluOSError as e:
            log.info("No status: %s", e)
            raw = None

        if raw is None or raw.track_id is None:
            log.info("Nothing loaded.")
        else:
            position = _mmss(raw.position_ms) if raw.position_ms is not None else "?"
            log.info("%s, %s, %s, %s, %s",
                     raw.timestamp_ms, raw.position_ms, position, raw.paused, raw.track_id)
        sleep(interval_ms / 1000)
