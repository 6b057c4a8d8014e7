# core/types.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from core.geometry import WORLD_FORWARD, WORLD_UP, vec3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PitchSample:
    """One tick's pitch estimate from the external analyzer."""
    frequency: float = 0.0
    confidence: float = 0.0
    voice_detected: bool = False
    amplitude: float = 0.0

    def is_voiced(self, min_confidence: float = 0.0) -> bool:
        """Voice present, confident enough and carrying a usable frequency."""
        if not self.voice_detected:
            return False
        if self.confidence < min_confidence:
            return False
        return math.isfinite(self.frequency) and self.frequency > 0.0


SILENT_SAMPLE = PitchSample()


def coerce_sample(sample) -> PitchSample:
    """
    Normalize whatever the pitch source handed us.

    None, stale or malformed input becomes SILENT_SAMPLE; dict-shaped
    samples (analyzer output) are accepted as well.
    """
    if sample is None:
        return SILENT_SAMPLE
    if isinstance(sample, PitchSample):
        return sample
    if isinstance(sample, dict):
        try:
            return PitchSample(
                frequency=float(sample.get("frequency", 0.0) or 0.0),
                confidence=float(sample.get("confidence", 0.0) or 0.0),
                voice_detected=bool(sample.get("voice_detected", False)),
                amplitude=float(sample.get("amplitude", 0.0) or 0.0),
            )
        except (TypeError, ValueError):
            logger.debug("Discarding malformed pitch sample: %r", sample)
            return SILENT_SAMPLE
    logger.debug("Discarding unknown pitch sample type: %r", type(sample))
    return SILENT_SAMPLE


@dataclass(eq=False)
class HeadPose:
    """Head anchor pose: position plus forward/up orientation vectors."""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    forward: np.ndarray = field(default_factory=lambda: WORLD_FORWARD.copy())
    up: np.ndarray = field(default_factory=lambda: WORLD_UP.copy())

    def __post_init__(self):
        self.position = vec3(self.position)
        self.forward = vec3(self.forward)
        self.up = vec3(self.up)

    def translated(self, offset) -> "HeadPose":
        return HeadPose(self.position + vec3(offset), self.forward, self.up)


# ---------------------------------------------------------
# Most-recent-wins pitch feed
# ---------------------------------------------------------
class LatestPitchFeed:
    """
    Holds the latest sample pushed by the analyzer thread/callback.

    No buffering: a newer push replaces the older one. Calling the feed
    returns the sample, or None once it is older than `stale_after`
    seconds of tick time.
    """

    def __init__(self, stale_after: Optional[float] = 0.25):
        self.stale_after = stale_after
        self._sample: Optional[PitchSample] = None
        self._age = 0.0

    def push(self, sample) -> None:
        self._sample = coerce_sample(sample)
        self._age = 0.0

    def tick(self, dt: float) -> None:
        if dt > 0:
            self._age += dt

    def latest(self) -> Optional[PitchSample]:
        if self._sample is None:
            return None
        if self.stale_after is not None and self._age > self.stale_after:
            return None
        return self._sample

    __call__ = latest

    def clear(self) -> None:
        self._sample = None
        self._age = 0.0
