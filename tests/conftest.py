# tests/conftest.py
import logging

import numpy as np
import pytest

from core.types import HeadPose, LatestPitchFeed, PitchSample
from pickups.models import sequence_from_frequencies
from pitch.mapper import HeightRange


# ---------------------------------------------------------
# Ranges
# ---------------------------------------------------------
@pytest.fixture
def small_range():
    """base 4 / max 20 over 80-300 Hz."""
    return HeightRange(base_height=4.0, max_height=20.0, min_frequency=80.0, max_frequency=300.0)


@pytest.fixture
def default_range():
    return HeightRange()


# ---------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------
class FakeHeadAnchor:
    """Callable head anchor with a mutable pose."""

    def __init__(self, position=(0.0, 0.0, 0.0), forward=(0.0, 0.0, 1.0), up=(0.0, 1.0, 0.0)):
        self.pose = HeadPose(position=position, forward=forward, up=up)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.pose


class FakePitchSource:
    """Callable pitch source returning whatever was last set."""

    def __init__(self, sample=None):
        self.sample = sample

    def sing(self, frequency, confidence=0.9):
        self.sample = PitchSample(frequency=frequency, confidence=confidence,
                                  voice_detected=True, amplitude=0.3)

    def silence(self):
        self.sample = PitchSample()

    def __call__(self):
        return self.sample


@pytest.fixture
def head_anchor():
    return FakeHeadAnchor()


@pytest.fixture
def pitch_source():
    return FakePitchSource()


@pytest.fixture
def pitch_feed():
    return LatestPitchFeed(stale_after=None)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def five_notes():
    return sequence_from_frequencies([110.0, 130.0, 150.0, 170.0, 190.0])


@pytest.fixture(autouse=True)
def _quiet_matplotlib_logs():
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    yield


@pytest.fixture
def make_anchor():
    return FakeHeadAnchor
