import argparse
import logging
import os
import signal
import sys

from bluos import BluOSClient
from explored import EnabledFlag, ExploredRegistry
from explorer import CLEAR, TOGGLE, Explorer, monotonic_ms, print_states
from notifier import AlertHandler, from_env as webhook_notifier_from_env
from notifier_gotify import from_env as gotify_notifier_from_env
from readiness import wait_until_ready
from state import DataIntegrityError
from store import JsonStore

# -------------------------
# Configuration via ENV VARS
# -------------------------
BLUOS_HOST = os.getenv("BLUOS_HOST", "127.0.0.1")
BLUOS_PORT = int(os.getenv("BLUOS_PORT", "11000"))
BLUOS_TIMEOUT = int(os.getenv("BLUOS_TIMEOUT", "5"))
POLL_INTERVAL_MS = max(10, int(os.getenv("POLL_INTERVAL_MS", "100")))
PROGRESS_THRESHOLD_MS = int(os.getenv("PROGRESS_THRESHOLD_MS", "30000"))
EXPLORE_STORE_PATH = os.getenv("EXPLORE_STORE_PATH", "/data/explore.json")
READY_MAX_TRIES = int(os.getenv("READY_MAX_TRIES", "200"))
READY_RETRY_MS = int(os.getenv("READY_RETRY_MS", "300"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

log = logging.getLogger("bluos-explore")


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,  # ensure our config is used even if libs pre-configure logging
    )
    # Warnings and errors also go to the user, like the old in-player notifications.
    alerts = AlertHandler(webhook_notifier_from_env(), gotify_notifier_from_env())
    alerts.setFormatter(logging.Formatter("%(message)s"))
    logging.getLogger().addHandler(alerts)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bluos-explore",
        description="Skip BluOS tracks you have already listened to.",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--clear-explored", action="store_true", help="forget all explored tracks and exit")
    group.add_argument("--enable", action="store_true", help="turn exploring on and exit")
    group.add_argument("--disable", action="store_true", help="turn exploring off and exit")
    group.add_argument("--list-explored", action="store_true", help="print explored track ids and exit")
    group.add_argument("--print-states", action="store_true", help="log raw player states (debugging)")
    return parser.parse_args(argv)


def install_signal_handlers(explorer: Explorer) -> None:
    def _stop(signum, frame):
        log.info("Received signal %s, stopping", signum)
        explorer.stop()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)
    # Live commands, the stand-in for hotkeys: SIGUSR1 toggles, SIGUSR2 clears.
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, lambda signum, frame: explorer.request(TOGGLE))
        signal.signal(signal.SIGUSR2, lambda signum, frame: explorer.request(CLEAR))


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    store = JsonStore(EXPLORE_STORE_PATH)
    flag = EnabledFlag(store)
    registry = ExploredRegistry(store)
    flag.load()
    registry.load()

    if args.clear_explored:
        registry.clear()
        return 0
    if args.enable or args.disable:
        flag.set(args.enable)
        return 0
    if args.list_explored:
        for track_id in registry:
            print(track_id)
        return 0

    blu = BluOSClient(BLUOS_HOST, BLUOS_PORT, timeout=BLUOS_TIMEOUT, clock=monotonic_ms)
    log.info("BluOS device: %s:%s | Store: %s (explored=%s, enabled=%s)",
             BLUOS_HOST, BLUOS_PORT, EXPLORE_STORE_PATH, len(registry), flag.enabled)

    if args.print_states:
        try:
            print_states(blu, interval_ms=POLL_INTERVAL_MS)
        except KeyboardInterrupt:
            pass
        return 0

    wait_until_ready(blu.is_ready, max_tries=READY_MAX_TRIES, retry_wait_ms=READY_RETRY_MS)

    explorer = Explorer(
        blu, blu, registry, flag,
        threshold_ms=PROGRESS_THRESHOLD_MS,
        interval_ms=POLL_INTERVAL_MS,
        clock=monotonic_ms,
    )
    install_signal_handlers(explorer)

    try:
        explorer.run()
    except DataIntegrityError as e:
        # Tracking stops until the process is restarted.
        log.error("Player sent inconsistent data, exploring stopped: %s", e)
        return 1
    log.info("Shutting down…")
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
