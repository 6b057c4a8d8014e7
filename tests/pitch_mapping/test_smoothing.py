import numpy as np
import pytest

from pitch.smoothing import CriticallyDampedSmoother, PitchSmoother, smooth_damp


# ----------------------------------------------------------------------
# smooth_damp
# ----------------------------------------------------------------------

def test_smooth_damp_moves_toward_target():
    value, velocity = smooth_damp(0.0, 10.0, 0.0, smooth_time=0.5, dt=0.1)
    assert 0.0 < value < 10.0
    assert velocity > 0.0


def test_smooth_damp_zero_dt_is_noop():
    assert smooth_damp(3.0, 10.0, 1.5, smooth_time=0.5, dt=0.0) == (3.0, 1.5)


def test_smooth_damp_converges_without_overshoot():
    value, velocity = 0.0, 0.0
    trace = []
    for _ in range(600):
        value, velocity = smooth_damp(value, 10.0, velocity, smooth_time=0.3, dt=1 / 60)
        trace.append(value)
    assert max(trace) <= 10.0
    assert trace[-1] == pytest.approx(10.0, abs=1e-3)


def test_smooth_damp_downward_does_not_undershoot():
    value, velocity = 10.0, 0.0
    for _ in range(600):
        value, velocity = smooth_damp(value, 2.0, velocity, smooth_time=0.2, dt=1 / 60)
        assert value >= 2.0
    assert value == pytest.approx(2.0, abs=1e-3)


def test_smooth_damp_respects_max_speed():
    value, velocity = smooth_damp(0.0, 100.0, 0.0, smooth_time=0.1, dt=0.1, max_speed=5.0)
    assert value <= 5.0 * 0.1
    fast, _ = smooth_damp(0.0, 100.0, 0.0, smooth_time=0.1, dt=0.1)
    assert value < fast


def test_smooth_damp_works_on_vectors():
    current = np.array([0.0, 0.0, 0.0])
    target = np.array([1.0, 2.0, 3.0])
    out, vel = smooth_damp(current, target, np.zeros(3), smooth_time=0.2, dt=0.05)
    assert out.shape == (3,)
    assert np.all(out > 0) and np.all(out < target)


def test_shorter_smooth_time_tracks_faster():
    slow, _ = smooth_damp(0.0, 1.0, 0.0, smooth_time=1.0, dt=0.05)
    fast, _ = smooth_damp(0.0, 1.0, 0.0, smooth_time=0.1, dt=0.05)
    assert fast > slow


# ----------------------------------------------------------------------
# CriticallyDampedSmoother
# ----------------------------------------------------------------------

def test_smoother_keeps_velocity_between_updates():
    s = CriticallyDampedSmoother(0.0)
    s.update(5.0, 0.5, 0.1)
    assert s.velocity > 0.0
    first = s.current
    s.update(5.0, 0.5, 0.1)
    assert s.current > first


def test_smoother_reset():
    s = CriticallyDampedSmoother(1.0)
    s.update(9.0, 0.1, 0.1)
    s.reset(4.0)
    assert s.current == 4.0
    assert s.velocity == 0.0


# ----------------------------------------------------------------------
# PitchSmoother
# ----------------------------------------------------------------------

def test_pitch_smoother_first_value_passes_through():
    ps = PitchSmoother()
    assert ps.update(220.0) == 220.0


def test_pitch_smoother_ema():
    ps = PitchSmoother(alpha=0.5)
    ps.update(200.0)
    assert ps.update(100.0) == pytest.approx(150.0)


@pytest.mark.parametrize("bad", [None, 0.0, -5.0, float("nan")])
def test_pitch_smoother_ignores_unusable(bad):
    ps = PitchSmoother()
    ps.update(180.0)
    assert ps.update(bad) == 180.0


def test_pitch_smoother_confidence_gate():
    ps = PitchSmoother(min_confidence=0.5)
    assert ps.update(150.0, confidence=0.2) is None
    ps.update(150.0, confidence=0.9)
    assert ps.update(300.0, confidence=0.1) == 150.0


def test_pitch_smoother_reset():
    ps = PitchSmoother()
    ps.update(150.0)
    ps.reset()
    assert ps.current is None
