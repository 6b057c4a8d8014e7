# telemetry/proximity.py
"""
Throttled, human-readable telemetry about the player and the live target.
Purely observational: nothing here feeds back into the game state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from core.geometry import vec3
from core.types import PitchSample
from telemetry.pitch_match import classify_pitch_match

logger = logging.getLogger(__name__)


class LogThrottle:
    """Allows one emission per `interval` seconds of tick time."""

    def __init__(self, interval: float):
        self.interval = float(interval)
        self.next_time = 0.0

    def ready(self, now: float) -> bool:
        return now >= self.next_time

    def mark(self, now: float) -> None:
        self.next_time = now + self.interval


@dataclass(frozen=True)
class ProximitySnapshot:
    index: int
    distance: float
    player_height: float
    target_height: float
    target_frequency: float
    current_frequency: float
    match: str

    @property
    def height_diff(self) -> float:
        return abs(self.player_height - self.target_height)

    @property
    def frequency_diff(self) -> float:
        return abs(self.target_frequency - self.current_frequency)

    def to_text(self) -> str:
        return (
            f"Near target #{self.index}: "
            f"player={self.player_height:.2f}m target={self.target_height:.2f}m "
            f"(diff {self.height_diff:.2f}m), "
            f"target={self.target_frequency:.1f}Hz voice={self.current_frequency:.1f}Hz "
            f"(diff {self.frequency_diff:.1f}Hz, {self.match}), "
            f"distance={self.distance:.2f}m"
        )


class ProximityFeedback:
    """
    Logs one snapshot per approach when the player gets within
    proximity_threshold of the live target. Re-arms once the player is
    farther than rearm_factor × threshold, or when a new target spawns.
    """

    def __init__(self, proximity_threshold: float = 2.0, log_cooldown: float = 0.5,
                 rearm_factor: float = 1.5):
        self.proximity_threshold = float(proximity_threshold)
        self.rearm_factor = float(rearm_factor)
        self.throttle = LogThrottle(log_cooldown)
        self._last_logged_entity: Optional[int] = None

    def update(self, now: float, player_position, target, sample: Optional[PitchSample]):
        if target is None or not self.throttle.ready(now):
            return None

        player = vec3(player_position)
        distance = float(np.linalg.norm(player - target.position))

        if distance < self.proximity_threshold:
            if self._last_logged_entity == target.entity_id:
                return None
            voiced = sample is not None and sample.is_voiced()
            snapshot = ProximitySnapshot(
                index=target.index,
                distance=distance,
                player_height=float(player[1]),
                target_height=target.height,
                target_frequency=target.frequency,
                current_frequency=sample.frequency if voiced else 0.0,
                match=classify_pitch_match(sample, target.frequency,
                                           tolerance_hz=target.tolerance_hz),
            )
            logger.info("%s", snapshot.to_text())
            self._last_logged_entity = target.entity_id
            self.throttle.mark(now)
            return snapshot

        if distance > self.proximity_threshold * self.rearm_factor:
            self._last_logged_entity = None
        return None


class HeightTelemetry:
    """Periodic comparison of player height against voice and target heights."""

    def __init__(self, mapper, interval: float = 0.5):
        self.mapper = mapper
        self.throttle = LogThrottle(interval)

    def update(self, now: float, player_height: float, sample: Optional[PitchSample],
               target_frequency: Optional[float]):
        if not self.throttle.ready(now):
            return None
        self.throttle.mark(now)

        voiced = sample is not None and sample.is_voiced()
        voice_height = self.mapper.map(sample.frequency) if voiced else None
        target_height = (self.mapper.map(target_frequency)
                         if target_frequency is not None else None)
        snapshot = {
            "player_height": float(player_height),
            "voice_height": voice_height,
            "target_height": target_height,
            "voice_frequency": sample.frequency if voiced else None,
            "target_frequency": target_frequency,
            "height_diff": (abs(player_height - target_height)
                            if target_height is not None else None),
        }
        logger.debug("height telemetry: %s", snapshot)
        return snapshot
