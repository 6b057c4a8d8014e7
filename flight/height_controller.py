# flight/height_controller.py
from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Callable, Optional

import numpy as np

from core.errors import ConfigurationError, MissingCollaborator
from core.geometry import vec3
from core.types import HeadPose, PitchSample, coerce_sample
from flight.locomotion import TiltLocomotion
from pitch.envelope import EnvelopeController
from pitch.mapper import FrequencyHeightMapper, HeightRange
from pitch.smoothing import CriticallyDampedSmoother

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class HeightController:
    """
    Voice-driven vertical position plus head-tilt forward motion.

    Per tick:
      - voiced sample            → raw target = mapped height
      - silent, within fall_delay → still active, raw target held
      - silent afterwards        → inactive, raw target = base height
      - envelope scales the excursion above base height
      - critically damped smoothing (attack/release time constants)

    Missing collaborators or invalid envelope settings leave the
    controller DISABLED: the player stays at base height and a single
    diagnostic is logged.
    """

    def __init__(
        self,
        height_range: HeightRange,
        pitch_source: Optional[Callable[[], Optional[PitchSample]]],
        head_anchor: Optional[Callable[[], Optional[HeadPose]]],
        envelope_config=None,
        locomotion: Optional[TiltLocomotion] = None,
        ground_probe: Optional[Callable[[np.ndarray], Optional[float]]] = None,
        terrain_buffer: float = 0.0,
        start_position=None,
    ):
        self.mapper = FrequencyHeightMapper(height_range)
        self.locomotion = locomotion if locomotion is not None else TiltLocomotion()
        self.ground_probe = ground_probe
        self.terrain_buffer = float(terrain_buffer)

        self._pitch_source = pitch_source
        self._head_anchor = head_anchor

        self.state = ControllerState.ACTIVE
        self.diagnostic: Optional[str] = None

        self.position = vec3(start_position if start_position is not None else (0.0, 0.0, 0.0))
        self.position[1] = height_range.base_height
        self.height = height_range.base_height
        self.target_height = height_range.base_height
        self.active = False

        self._raw_target = height_range.base_height
        self._elapsed = 0.0
        self._last_voice_time: Optional[float] = None
        self._smoother = CriticallyDampedSmoother(self.height)

        self.fall_delay = float(getattr(envelope_config, "fall_delay", 1.0))
        self.min_confidence = float(getattr(envelope_config, "min_confidence", 0.0))

        self.envelope: Optional[EnvelopeController] = None
        try:
            self.envelope = _build_envelope(envelope_config)
            if self.fall_delay < 0:
                raise ConfigurationError(f"fall_delay must be >= 0, got {self.fall_delay}")
            if pitch_source is None:
                raise MissingCollaborator("pitch source")
            if head_anchor is None:
                raise MissingCollaborator("tracking anchor")
        except (ConfigurationError, MissingCollaborator) as e:
            self._disable(str(e))

    # ---------------------------------------------------------
    # State
    # ---------------------------------------------------------
    @property
    def disabled(self) -> bool:
        return self.state is ControllerState.DISABLED

    @property
    def base_height(self) -> float:
        return self.mapper.base_height

    @property
    def envelope_value(self) -> float:
        return self.envelope.value if self.envelope is not None else 0.0

    def _disable(self, reason: str) -> None:
        if self.disabled:
            return
        self.state = ControllerState.DISABLED
        self.diagnostic = reason
        self.height = self.base_height
        self.position[1] = self.height
        logger.error("HeightController disabled: %s", reason)

    def initialize(self, height_range: HeightRange) -> None:
        """Swap in a new range; takes effect on the next update."""
        self.mapper.initialize(height_range)

    def reset(self) -> None:
        base = self.base_height
        self.height = base
        self.target_height = base
        self.position[1] = base
        self._raw_target = base
        self._last_voice_time = None
        self._smoother.reset(base)
        if self.envelope is not None:
            self.envelope.reset()
        self.active = False

    def head_pose(self) -> Optional[HeadPose]:
        """Head anchor in world space (tracked offset + rig position)."""
        if self._head_anchor is None:
            return None
        local = self._head_anchor()
        if local is None:
            return None
        return local.translated(self.position)

    # ---------------------------------------------------------
    # Per-tick update
    # ---------------------------------------------------------
    def update(self, dt: float) -> float:
        if self.disabled:
            return self.height

        dt = float(dt)
        if not math.isfinite(dt) or dt < 0:
            logger.debug("Ignoring invalid dt=%r", dt)
            dt = 0.0
        self._elapsed += dt

        self._update_height(dt)

        pose = self._head_anchor()
        if pose is not None:
            self.position += self.locomotion.step(pose, dt)

        return self.height

    def _update_height(self, dt: float) -> None:
        sample = coerce_sample(self._pitch_source())
        base = self.base_height

        if sample.is_voiced(self.min_confidence):
            self._last_voice_time = self._elapsed
            self._raw_target = self.mapper.map(sample.frequency)
            active = True
        elif (self._last_voice_time is not None
              and self._elapsed - self._last_voice_time <= self.fall_delay):
            # Grace window: keep the last mapped target
            active = True
        else:
            active = False
            self._raw_target = base

        envelope = self.envelope.update(active, dt)
        shaped = base + (self._raw_target - base) * envelope
        shaped += self._ground_clearance(shaped)

        smooth_time = self.envelope.attack_time if active else self.envelope.release_time
        self.height = self._smoother.update(shaped, smooth_time, dt)
        self.target_height = shaped
        self.active = active
        self.position[1] = self.height

        logger.debug("height=%.2f target=%.2f env=%.2f freq=%.1f active=%s",
                     self.height, shaped, envelope, sample.frequency, active)

    def _ground_clearance(self, height: float) -> float:
        """Extra height needed to stay terrain_buffer above probed ground."""
        if self.ground_probe is None:
            return 0.0
        ground = self.ground_probe(self.position.copy())
        if ground is None:
            return 0.0
        return max(0.0, float(ground) + self.terrain_buffer - height)


def _build_envelope(envelope_config) -> EnvelopeController:
    if envelope_config is None:
        return EnvelopeController()
    return EnvelopeController(
        attack_time=envelope_config.attack_time,
        decay_time=envelope_config.decay_time,
        sustain_level=envelope_config.sustain_level,
        release_time=envelope_config.release_time,
    )
