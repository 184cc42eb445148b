import logging
import time
from typing import Callable

log = logging.getLogger("readiness")


def wait_until_ready(probe: Callable[[], bool], *, max_tries: int = 200,
                     retry_wait_ms: int = 300, sleep: Callable[[float], None] = time.sleep,
                     name: str = "BluOS player") -> int:
    """Block until probe() answers true; returns the number of tries it took.

    Never gives up. Each time max_tries attempts have failed an error is logged
    and the budget doubles, so the log doesn't fill up while the player is off.
    """
    tries = 1
    log.debug("Waiting until the %s answers.", name)
    while True:
        if probe():
            log.debug("Took %d try/tries to reach the %s.", tries, name)
            return tries

        if tries >= max_tries:
            log.error("The %s hasn't answered after %d try/tries.", name, max_tries)
            max_tries *= 2
        sleep(retry_wait_ms / 1000)
        tries += 1
