import logging
from dataclasses import dataclass, field, replace

log = logging.getLogger("explore")


class DataIntegrityError(Exception):
    """The host reported a loaded track without the state that must come with it."""


# -------------------------
# Typed view of one poll
# -------------------------
@dataclass(frozen=True)
class PlayerSnapshot:
    track_id: str
    is_playing: bool
    position_ms: int
    timestamp_ms: int  # host event clock, not wall clock


def read_snapshot(raw, enabled: bool) -> PlayerSnapshot | None:
    """Normalize a raw host snapshot.

    Returns None when the feature is disabled or nothing is loaded. A loaded
    track missing its pause flag, position or event timestamp is fatal.
    """
    if not enabled or raw is None or not raw.track_id:
        return None

    missing = [
        name for name in ("paused", "position_ms", "timestamp_ms")
        if getattr(raw, name) is None
    ]
    if missing:
        raise DataIntegrityError(
            f"Host returned track {raw.track_id!r} without {', '.join(missing)}: {raw!r}"
        )

    return PlayerSnapshot(
        track_id=raw.track_id,
        is_playing=not raw.paused,
        position_ms=int(raw.position_ms),
        timestamp_ms=int(raw.timestamp_ms),
    )


@dataclass(frozen=True)
class Transition:
    same_state: bool
    track_changed: bool


def _track_id(snapshot: PlayerSnapshot | None) -> str | None:
    return snapshot.track_id if snapshot is not None else None


def classify(previous: PlayerSnapshot | None, current: PlayerSnapshot | None) -> Transition:
    if previous is None or current is None:
        same_state = previous is None and current is None
    else:
        same_state = previous.timestamp_ms == current.timestamp_ms
    return Transition(
        same_state=same_state,
        track_changed=_track_id(previous) != _track_id(current),
    )


# -------------------------
# Loop state, threaded through every cycle
# -------------------------
@dataclass(frozen=True)
class TrackProgress:
    total_ms: int = 0
    rough_ms: int = 0
    already_marked: bool = False


@dataclass(frozen=True)
class LoopState:
    previous: PlayerSnapshot | None = None
    progress: TrackProgress = field(default_factory=TrackProgress)


@dataclass(frozen=True)
class CycleOutcome:
    transition: Transition
    discovered: str | None = None  # track that crossed the threshold this cycle
    entered: str | None = None     # track that was just switched to


def advance(state: LoopState, current: PlayerSnapshot | None, *,
            now_ms: int, threshold_ms: int) -> tuple[LoopState, CycleOutcome]:
    """Run one accrual step and return the next loop state.

    Nothing here has side effects; the outcome names the track to mark as
    explored and the track that was entered, and the caller acts on them.
    """
    previous = state.previous
    progress = state.progress
    transition = classify(previous, current)
    log.debug("Same state: %s.", transition.same_state)

    if previous is not None and previous.is_playing and not progress.already_marked:
        if transition.same_state:
            # Nothing new from the host, keep estimating from the wall clock
            # so long tracks still cross the threshold between host events.
            rough = max(0, now_ms - previous.timestamp_ms)
            progress = replace(progress, rough_ms=rough)
            log.debug("Current rough track progress: %.1fs.", rough / 1000)
        else:
            if current is not None:
                accurate = max(0, current.timestamp_ms - previous.timestamp_ms)
                progress = replace(progress, total_ms=progress.total_ms + accurate)
                log.debug("Added accurate progress: %.1fs. Total: %.1fs.",
                          accurate / 1000, progress.total_ms / 1000)
            else:
                # Playback stopped; the last estimate is all we have.
                progress = replace(progress, total_ms=progress.total_ms + progress.rough_ms)
                log.debug("Added rough progress: %.1fs. Total: %.1fs.",
                          progress.rough_ms / 1000, progress.total_ms / 1000)
            progress = replace(progress, rough_ms=0)

    discovered = None
    if (previous is not None and not progress.already_marked
            and progress.total_ms + progress.rough_ms >= threshold_ms):
        log.debug("Threshold met for %s.", previous.track_id)
        discovered = previous.track_id
        progress = replace(progress, already_marked=True)

    entered = None
    if transition.track_changed:
        log.debug("Track changed. Resetting values.")
        progress = TrackProgress()
        entered = _track_id(current)

    outcome = CycleOutcome(transition=transition, discovered=discovered, entered=entered)
    return LoopState(previous=current, progress=progress), outcome
