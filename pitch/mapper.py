# pitch/mapper.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeightRange:
    """Immutable height/frequency range shared by every height consumer."""
    base_height: float = 20.0
    max_height: float = 40.0
    min_frequency: float = 80.0
    max_frequency: float = 300.0

    def __post_init__(self):
        for name in ("base_height", "max_height", "min_frequency", "max_frequency"):
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be finite, got {value!r}")
            object.__setattr__(self, name, value)
        if self.max_height <= self.base_height:
            raise ConfigurationError(
                f"max_height ({self.max_height}) must be greater than "
                f"base_height ({self.base_height})"
            )
        if self.min_frequency <= 0:
            raise ConfigurationError(
                f"min_frequency must be positive, got {self.min_frequency}")
        if self.max_frequency <= self.min_frequency:
            raise ConfigurationError(
                f"max_frequency ({self.max_frequency}) must be greater than "
                f"min_frequency ({self.min_frequency})"
            )

    @property
    def span(self) -> float:
        return self.max_height - self.base_height

    def clamp_frequency(self, frequency: float) -> float:
        return float(np.clip(frequency, self.min_frequency, self.max_frequency))


def map_frequency_to_height(frequency: float, height_range: HeightRange) -> float:
    """
    Log-scale frequency to height.

    Equal frequency ratios (musical intervals) give equal height steps.
    Out-of-range input is clamped; non-finite or non-positive input maps
    to the base height.
    """
    r = height_range
    try:
        frequency = float(frequency)
    except (TypeError, ValueError):
        return r.base_height
    if not math.isfinite(frequency) or frequency <= 0:
        return r.base_height

    frequency = r.clamp_frequency(frequency)
    log_min = math.log(r.min_frequency)
    t = (math.log(frequency) - log_min) / (math.log(r.max_frequency) - log_min)
    t = min(1.0, max(0.0, t))
    return r.base_height + t * r.span


def map_height_to_frequency(height: float, height_range: HeightRange) -> float:
    """Inverse of map_frequency_to_height (height clamped into range)."""
    r = height_range
    t = (float(height) - r.base_height) / r.span
    t = min(1.0, max(0.0, t))
    log_min = math.log(r.min_frequency)
    return math.exp(log_min + t * (math.log(r.max_frequency) - log_min))


class FrequencyHeightMapper:
    """
    Holds the current HeightRange and maps frequencies with it.

    `initialize` swaps the whole range; the next `map` call uses it.
    """

    def __init__(self, height_range: Optional[HeightRange] = None):
        self.height_range = height_range or HeightRange()

    def initialize(self, height_range: HeightRange) -> None:
        if not isinstance(height_range, HeightRange):
            raise ConfigurationError(
                f"expected HeightRange, got {type(height_range).__name__}")
        self.height_range = height_range
        logger.info(
            "Height mapper initialized: base=%.2fm max=%.2fm freq=%.1f-%.1fHz",
            height_range.base_height, height_range.max_height,
            height_range.min_frequency, height_range.max_frequency,
        )

    @property
    def base_height(self) -> float:
        return self.height_range.base_height

    def map(self, frequency: float) -> float:
        return map_frequency_to_height(frequency, self.height_range)

    __call__ = map

    def frequency_for_height(self, height: float) -> float:
        return map_height_to_frequency(height, self.height_range)
