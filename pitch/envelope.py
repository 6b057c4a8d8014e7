# pitch/envelope.py
import logging
import math
from enum import Enum

from core.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


def _is_number(x) -> bool:
    try:
        return math.isfinite(float(x))
    except (TypeError, ValueError):
        return False


def _is_positive(x) -> bool:
    return _is_number(x) and float(x) > 0


class EnvelopePhase(Enum):
    ATTACK = "attack"
    DECAY = "decay"
    SUSTAIN = "sustain"
    RELEASE = "release"


class EnvelopeController:
    """
    ADSR envelope driven by a boolean "signal active" input.

      active:    value < 1           → attack  (+dt / attack_time)
                 value > sustain     → decay   (-dt / decay_time)
                 otherwise           → sustain (hold)
      inactive:                      → release (-dt / release_time)

    The phase is derived from the value and the last input rather than
    stored; only `value` (always within [0, 1]) matters to callers.
    """

    def __init__(self, attack_time=0.1, decay_time=0.1, sustain_level=1.0,
                 release_time=0.5, value=0.0):
        for name, t in (("attack_time", attack_time),
                        ("decay_time", decay_time),
                        ("release_time", release_time)):
            if not _is_positive(t):
                raise InvalidConfiguration(f"{name} must be > 0, got {t!r}")
        if not _is_number(sustain_level) or not 0.0 <= float(sustain_level) <= 1.0:
            raise InvalidConfiguration(
                f"sustain_level must be within [0, 1], got {sustain_level!r}")

        self.attack_time = float(attack_time)
        self.decay_time = float(decay_time)
        self.sustain_level = float(sustain_level)
        self.release_time = float(release_time)

        self.value = min(1.0, max(0.0, float(value)))
        self._active = False

    @property
    def phase(self) -> EnvelopePhase:
        if not self._active:
            return EnvelopePhase.RELEASE
        if self.value < 1.0:
            return EnvelopePhase.ATTACK
        if self.value > self.sustain_level:
            return EnvelopePhase.DECAY
        return EnvelopePhase.SUSTAIN

    def update(self, active: bool, dt: float) -> float:
        dt = float(dt)
        if not math.isfinite(dt) or dt < 0:
            logger.debug("Ignoring invalid envelope dt=%r", dt)
            dt = 0.0

        self._active = bool(active)
        phase = self.phase
        value = self.value

        if phase is EnvelopePhase.ATTACK:
            value += dt / self.attack_time
        elif phase is EnvelopePhase.DECAY:
            value -= dt / self.decay_time
        elif phase is EnvelopePhase.RELEASE:
            value -= dt / self.release_time

        self.value = min(1.0, max(0.0, value))
        return self.value

    def reset(self, value: float = 0.0) -> None:
        self.value = min(1.0, max(0.0, float(value)))
        self._active = False
