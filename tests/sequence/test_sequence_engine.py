import logging
from unittest.mock import MagicMock

import numpy as np
import pytest

from core.errors import ConfigurationError, MissingCollaborator
from pickups.approach import StationaryApproach, TowardPlayerApproach
from pickups.engine import SlotState, TargetSequenceEngine
from pickups.models import sequence_from_frequencies
from pickups.range_stats import SessionRangeStats
from pitch.mapper import HeightRange

DT = 0.1


def make_engine(frequencies, anchor, height_range, **kwargs):
    """Fast engine: spawns 1m ahead, target reaches the player in one tick."""
    options = dict(
        approach=TowardPlayerApproach(speed=10.0),
        spawn_distance=1.0,
        lateral_offset=0.0,
        spawn_cooldown=0.0,
    )
    options.update(kwargs)
    return TargetSequenceEngine(sequence_from_frequencies(frequencies), height_range,
                                anchor, **options)


def tick_until(engine, predicate, max_ticks=500):
    events = []
    for _ in range(max_ticks):
        events.extend(engine.update(DT))
        if predicate(engine):
            return events
    raise AssertionError("condition not reached")


def spawn(engine):
    """Tick until a target is live and return its handle."""
    tick_until(engine, lambda e: e.active_target is not None)
    return engine.active_target


def kinds(events):
    return [e["event"] for e in events]


# ----------------------------------------------------------------------
# Construction
# ----------------------------------------------------------------------

def test_empty_sequence_fails_fast(small_range, head_anchor):
    with pytest.raises(ConfigurationError):
        TargetSequenceEngine([], small_range, head_anchor)


def test_missing_anchor(small_range):
    with pytest.raises(MissingCollaborator):
        TargetSequenceEngine(sequence_from_frequencies([110.0]), small_range, None)


@pytest.mark.parametrize("kwargs", [
    {"miss_limit": 0},
    {"spawn_distance": 0.0},
    {"spawn_cooldown": -1.0},
    {"start_delay": -1.0},
    {"lateral_offset": -1.0},
    {"base_frequency": 0.0},
])
def test_invalid_parameters(small_range, head_anchor, kwargs):
    with pytest.raises(ConfigurationError):
        make_engine([110.0], head_anchor, small_range, **kwargs)


def test_stats_are_reset_at_start(small_range, head_anchor):
    stats = SessionRangeStats()
    stats.record(99.0)
    make_engine([110.0], head_anchor, small_range, range_stats=stats)
    assert stats.hit_count == 0


# ----------------------------------------------------------------------
# Spawning
# ----------------------------------------------------------------------

def test_spawn_ahead_at_mapped_height(small_range, head_anchor):
    e = make_engine([150.0], head_anchor, small_range, spawn_distance=10.0)
    events = e.update(DT)
    assert kinds(events) == ["spawned"]
    handle = e.active_target
    assert e.slot_state is SlotState.SPAWNED
    assert handle.height == pytest.approx(e.mapper.map(150.0))
    assert events[0]["height"] == pytest.approx(handle.height)
    assert np.allclose(handle.position[[0, 2]], (0.0, 10.0))


def test_handle_carries_slot_tolerance(small_range, head_anchor):
    e = make_engine([150.0], head_anchor, small_range)
    e.sequence[0].tolerance_hz = 12.0
    assert spawn(e).tolerance_hz == 12.0


def test_spawn_follows_player_heading(small_range, make_anchor):
    anchor = make_anchor(position=(2.0, 0.0, 3.0), forward=(1.0, 0.0, 0.0))
    e = make_engine([150.0], anchor, small_range, spawn_distance=10.0)
    e.update(DT)
    assert np.allclose(e.active_target.position[[0, 2]], (12.0, 3.0))


def test_lateral_offset_is_bounded(small_range, head_anchor):
    rng = np.random.default_rng(3)
    for _ in range(20):
        e = make_engine([150.0], head_anchor, small_range, spawn_distance=10.0,
                        lateral_offset=2.0, rng=rng)
        e.update(DT)
        x, _, z = e.active_target.position
        assert -2.0 <= x <= 2.0
        assert z == pytest.approx(10.0)


def test_out_of_range_entries_are_clamped_not_rejected(small_range, head_anchor):
    e = make_engine([20.0, 5000.0], head_anchor, small_range,
                    approach=StationaryApproach(max_distance=100.0))
    first = spawn(e)
    assert first.height == pytest.approx(4.0)
    e.on_trigger_enter(first.entity_id)
    second = spawn(e)
    assert second.height == pytest.approx(20.0)
    assert second.frequency == 5000.0


def test_no_spawn_without_pose(small_range):
    e = make_engine([150.0], lambda: None, small_range)
    for _ in range(10):
        assert e.update(DT) == []
    assert e.active_target is None


def test_start_delay(small_range, head_anchor):
    e = make_engine([150.0], head_anchor, small_range, start_delay=1.0)
    for _ in range(9):
        e.update(DT)
    assert e.active_target is None
    e.update(DT)
    e.update(DT)
    assert e.active_target is not None


def test_drone_follows_target_pitch(small_range, head_anchor):
    audio = MagicMock()
    e = make_engine([261.62], head_anchor, small_range, audio=audio, base_frequency=130.81)
    e.update(DT)
    audio.play_drone.assert_called_once()
    assert audio.play_drone.call_args[0][0] == pytest.approx(2.0)


# ----------------------------------------------------------------------
# Misses
# ----------------------------------------------------------------------

def test_miss_respawns_same_index(small_range, head_anchor):
    e = make_engine([150.0, 200.0], head_anchor, small_range, miss_limit=2)
    first = spawn(e)
    events = tick_until(e, lambda x: x.active_target is None)
    assert kinds(events) == ["missed"]
    assert e.current_index == 0
    assert e.sequence[0].missed_attempts == 1
    second = spawn(e)
    assert second.index == 0
    assert second.entity_id != first.entity_id


def test_sequence_terminates_after_n_times_miss_limit(small_range, head_anchor):
    e = make_engine([110.0, 150.0, 200.0], head_anchor, small_range, miss_limit=2)
    misses = 0
    index_after_miss = []
    for _ in range(200):
        for event in e.update(DT):
            if event["event"] == "missed":
                misses += 1
                index_after_miss.append(e.current_index)
        if e.complete:
            break
    assert e.complete
    assert misses == 3 * 2
    assert index_after_miss == [0, 1, 1, 2, 2, 3]
    assert e.slot_state is SlotState.COMPLETE


def test_cooldown_delays_respawn(small_range, head_anchor):
    e = make_engine([150.0], head_anchor, small_range, spawn_cooldown=0.5, miss_limit=3)
    spawn(e)
    tick_until(e, lambda x: x.active_target is None)
    missed_at = e.now
    spawn(e)
    assert e.now - missed_at >= 0.5 - 1e-9


def test_no_spawns_after_complete(small_range, head_anchor):
    e = make_engine([150.0], head_anchor, small_range, miss_limit=1)
    tick_until(e, lambda x: x.complete)
    for _ in range(20):
        assert "spawned" not in kinds(e.update(DT))
    assert e.active_target is None


# ----------------------------------------------------------------------
# Hits
# ----------------------------------------------------------------------

def test_collection_records_and_advances(small_range, head_anchor):
    audio = MagicMock()
    e = make_engine([150.0, 200.0], head_anchor, small_range, audio=audio)
    handle = spawn(e)
    event = e.on_trigger_enter(handle)
    assert event["event"] == "collected"
    assert event["frequency"] == 150.0
    assert event["complete"] is False
    assert e.current_index == 1
    assert e.sequence[0].collected
    assert e.stats.hit_frequencies == [150.0]
    assert e.active_target is None
    audio.play_success.assert_called_once()


def test_collection_is_idempotent_within_a_tick(small_range, head_anchor):
    e = make_engine([150.0, 200.0, 250.0], head_anchor, small_range)
    handle = spawn(e)
    first = e.on_trigger_enter(handle.entity_id)
    second = e.on_trigger_enter(handle.entity_id)
    assert first["event"] == "collected"
    assert second == {"event": "ignored", "reason": "already_processed",
                      "entity_id": handle.entity_id}
    assert e.current_index == 1
    assert e.stats.hit_count == 1


def test_stale_collection_is_ignored(small_range, head_anchor, caplog):
    e = make_engine([150.0, 200.0], head_anchor, small_range)
    old = spawn(e)
    e.on_trigger_enter(old.entity_id)
    spawn(e)
    with caplog.at_level(logging.WARNING):
        event = e.on_trigger_enter(old.entity_id)
    assert event["reason"] == "not_active"
    assert e.current_index == 1
    assert "not the active target" in caplog.text


def test_collection_without_active_target(small_range, head_anchor):
    e = make_engine([150.0], head_anchor, small_range)
    assert e.on_trigger_enter(1)["reason"] == "no_active_target"


def test_collection_after_complete(small_range, head_anchor):
    e = make_engine([150.0], head_anchor, small_range)
    handle = spawn(e)
    assert e.collect(handle)["complete"] is True
    e.update(DT)
    assert e.on_trigger_enter(handle.entity_id)["reason"] == "complete"


def test_at_most_one_active_target(small_range, head_anchor):
    rng = np.random.default_rng(11)
    e = make_engine([110.0, 130.0, 150.0, 170.0], head_anchor, small_range,
                    approach=TowardPlayerApproach(speed=3.0), spawn_distance=2.0)
    live = set()
    for _ in range(500):
        for event in e.update(DT):
            if event["event"] == "spawned":
                live.add(event["entity_id"])
            elif event["event"] == "missed":
                live.discard(event["entity_id"])
            assert len(live) <= 1
        if e.active_target is not None and rng.random() < 0.1:
            result = e.on_trigger_enter(e.active_target.entity_id)
            live.discard(result["entity_id"])
        if e.complete:
            break
    assert e.complete


# ----------------------------------------------------------------------
# Completion report
# ----------------------------------------------------------------------

def test_report_five_hits_two_misses(small_range, head_anchor):
    presenter = MagicMock()
    audio = MagicMock()
    e = make_engine([110.0, 130.0, 150.0, 170.0, 190.0, 250.0, 280.0], head_anchor,
                    small_range, presenter=presenter, audio=audio, miss_limit=2)
    for _ in range(5):
        e.on_trigger_enter(spawn(e))
    events = tick_until(e, lambda x: x.report is not None)

    assert kinds(events).count("missed") == 4
    presenter.assert_called_once()
    report = presenter.call_args[0][0]
    assert report is e.report
    assert report.hit_count == 5
    assert report.total_count == 7
    assert report.success_rate == pytest.approx(71.4, abs=0.05)
    assert report.lowest == 110.0
    assert report.highest == 190.0
    audio.stop_drone.assert_called_once()


def test_report_delivered_once(small_range, head_anchor):
    presenter = MagicMock()
    e = make_engine([150.0], head_anchor, small_range, presenter=presenter)
    e.on_trigger_enter(spawn(e))
    assert e.complete
    presenter.assert_not_called()
    events = []
    for _ in range(10):
        events.extend(e.update(DT))
    assert kinds(events) == ["complete"]
    presenter.assert_called_once()


# ----------------------------------------------------------------------
# Range replacement / teardown
# ----------------------------------------------------------------------

def test_initialize_affects_next_spawn(small_range, head_anchor):
    e = make_engine([300.0, 300.0], head_anchor, small_range)
    first = spawn(e)
    assert first.height == pytest.approx(20.0)
    e.initialize(HeightRange(base_height=0.0, max_height=8.0, min_frequency=80.0,
                             max_frequency=300.0))
    assert first.height == pytest.approx(20.0)
    e.on_trigger_enter(first)
    assert spawn(e).height == pytest.approx(8.0)


def test_teardown_stops_everything(small_range, head_anchor):
    audio = MagicMock()
    e = make_engine([150.0, 200.0], head_anchor, small_range, audio=audio)
    handle = spawn(e)
    e.teardown()
    audio.stop_all.assert_called_once()
    assert e.stopped
    assert e.active_target is None
    assert not e.complete
    assert e.update(DT) == []
    assert e.on_trigger_enter(handle)["reason"] == "stopped"
    e.teardown()
    audio.stop_all.assert_called_once()
