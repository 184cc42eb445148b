"""Progress accrual and discovery, driven one cycle at a time."""

import pytest

from state import (
    DataIntegrityError, LoopState, PlayerSnapshot, TrackProgress,
    advance, classify, read_snapshot,
)
from bluos import RawSnapshot
from conftest import raw

THRESHOLD = 30_000


def snap(track_id="A", ts=0, playing=True, position_ms=0):
    return PlayerSnapshot(track_id=track_id, is_playing=playing, position_ms=position_ms, timestamp_ms=ts)


def run(steps, threshold=THRESHOLD, state=None):
    """steps: (snapshot, now_ms) pairs. Returns the final state and all outcomes."""
    state = state or LoopState()
    outcomes = []
    for current, now in steps:
        state, outcome = advance(state, current, now_ms=now, threshold_ms=threshold)
        outcomes.append(outcome)
    return state, outcomes


# -------- SnapshotReader --------

def test_read_snapshot_normalizes_full_state():
    assert read_snapshot(raw("A", ts=5, paused=False, position_ms=1200), True) == snap("A", 5, True, 1200)
    assert read_snapshot(raw("A", ts=5, paused=True), True).is_playing is False


def test_read_snapshot_none_when_nothing_loaded():
    assert read_snapshot(None, True) is None
    assert read_snapshot(raw(track_id=None), True) is None


def test_read_snapshot_none_when_disabled():
    assert read_snapshot(raw("A", ts=5), False) is None


@pytest.mark.parametrize("missing", ["paused", "position_ms", "timestamp_ms"])
def test_read_snapshot_missing_field_is_fatal(missing):
    fields = dict(track_id="A", paused=False, position_ms=0, timestamp_ms=0)
    fields[missing] = None
    with pytest.raises(DataIntegrityError):
        read_snapshot(RawSnapshot(**fields), True)


# -------- TransitionClassifier --------

def test_classify():
    a0, a1, b1 = snap("A", 0), snap("A", 1000), snap("B", 1000)
    assert classify(a0, a0).same_state and not classify(a0, a0).track_changed
    assert not classify(a0, a1).same_state and not classify(a0, a1).track_changed
    assert classify(a1, b1).same_state and classify(a1, b1).track_changed
    assert not classify(None, a0).same_state and classify(None, a0).track_changed
    assert not classify(a0, None).same_state and classify(a0, None).track_changed
    assert classify(None, None).same_state and not classify(None, None).track_changed


# -------- ProgressAccumulator --------

def test_discovery_on_third_event_cycle():
    state, outcomes = run([
        (snap("A", 0), 0),
        (snap("A", 10_000), 10_000),
        (snap("A", 31_000), 31_000),
    ])
    assert [o.discovered for o in outcomes] == [None, None, "A"]
    assert state.progress.total_ms == 31_000
    assert state.progress.already_marked


def test_discovery_fires_at_most_once():
    state, outcomes = run([
        (snap("A", 0), 0),
        (snap("A", 31_000), 31_000),
        (snap("A", 31_000), 40_000),
        (snap("A", 50_000), 50_000),
        (snap("A", 60_000, playing=False), 60_000),
        (snap("A", 70_000), 70_000),
        (snap("A", 70_000), 200_000),
    ])
    assert [o.discovered for o in outcomes].count("A") == 1


def test_rough_progress_crosses_threshold_without_host_event():
    state, outcomes = run([
        (snap("A", 0), 0),
        (snap("A", 0), 29_900),
        (snap("A", 0), 30_000),
    ])
    assert [o.discovered for o in outcomes] == [None, None, "A"]
    assert state.progress.total_ms == 0
    assert state.progress.rough_ms == 30_000


def test_rough_progress_is_overwritten_not_summed():
    state, _ = run([
        (snap("A", 0), 0),
        (snap("A", 0), 1_000),
        (snap("A", 0), 2_000),
        (snap("A", 0), 3_000),
    ])
    assert state.progress.rough_ms == 3_000
    assert state.progress.total_ms == 0


def test_no_double_counting():
    state, _ = run([
        (snap("A", 0), 0),
        (snap("A", 0), 500),
        (snap("A", 1_000), 1_050),
        (snap("A", 1_000), 1_600),
        (snap("A", 1_000), 2_400),
        (snap("A", 2_500), 2_500),
    ], threshold=10**9)
    assert state.progress.total_ms == 2_500
    assert state.progress.rough_ms == 0


def test_total_is_monotonic_and_skips_paused_time():
    steps = [
        (snap("A", 0), 0),
        (snap("A", 1_000), 1_000),
        (snap("A", 2_000, playing=False), 2_000),
        (snap("A", 2_000, playing=False), 4_000),
        (snap("A", 5_000), 5_000),
        (snap("A", 5_000), 5_500),
        (snap("A", 6_000), 6_000),
        (snap("A", 3_000), 6_100),  # host clock going backwards never subtracts
    ]
    state = LoopState()
    totals = []
    for current, now in steps:
        state, _ = advance(state, current, now_ms=now, threshold_ms=10**9)
        totals.append(state.progress.total_ms)
    assert totals == sorted(totals)
    assert totals[-2] == 3_000
    assert totals[-1] == 3_000


def test_track_switch_resets_before_threshold():
    state, outcomes = run([
        (snap("A", 0), 0),
        (snap("A", 10_000), 10_000),
        (snap("B", 10_000), 10_100),
    ])
    assert state.progress == TrackProgress()
    assert state.previous.track_id == "B"
    assert all(o.discovered is None for o in outcomes)
    assert outcomes[-1].entered == "B"


def test_reset_clears_marked_flag_for_next_session():
    state, outcomes = run([
        (snap("A", 0), 0),
        (snap("A", 31_000), 31_000),
        (snap("B", 32_000), 32_000),
        (snap("B", 63_000), 63_000),
    ])
    assert [o.discovered for o in outcomes] == [None, "A", None, "B"]


def test_stop_commits_rough_then_resets():
    state = LoopState()
    state, _ = advance(state, snap("A", 0), now_ms=0, threshold_ms=THRESHOLD)
    state, _ = advance(state, snap("A", 0), now_ms=4_000, threshold_ms=THRESHOLD)
    assert state.progress.rough_ms == 4_000

    state, outcome = advance(state, None, now_ms=4_100, threshold_ms=THRESHOLD)
    assert outcome.transition.track_changed
    assert outcome.entered is None
    assert outcome.discovered is None
    assert state.progress == TrackProgress()
    assert state.previous is None


def test_interval_before_track_change_counts_for_old_track():
    state, outcomes = run([
        (snap("A", 0), 0),
        (snap("A", 25_000), 25_000),
        (snap("B", 31_000), 31_000),
    ])
    assert outcomes[-1].discovered == "A"
    assert outcomes[-1].entered == "B"
    assert state.progress == TrackProgress()


def test_nothing_accrues_while_paused_or_empty():
    state, outcomes = run([
        (None, 0),
        (None, 50_000),
        (snap("A", 0, playing=False), 60_000),
        (snap("A", 0, playing=False), 120_000),
    ])
    assert state.progress == TrackProgress()
    assert all(o.discovered is None for o in outcomes)
    assert outcomes[2].entered == "A"
