# pickups/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np

from core.errors import ConfigurationError

Color = Tuple[float, float, float, float]

BLUE = (0.0, 0.0, 1.0, 0.8)
SKY = (0.0, 0.5, 1.0, 0.8)
GREEN = (0.0, 1.0, 0.0, 0.8)
YELLOW = (1.0, 1.0, 0.0, 0.8)
ORANGE = (1.0, 0.5, 0.0, 0.8)
RED = (1.0, 0.0, 0.0, 0.8)


@dataclass
class Target:
    """One slot of the sequence; mutated in place as attempts happen."""
    frequency: float
    color: Color = SKY
    tolerance_hz: float = 5.0
    missed_attempts: int = 0
    collected: bool = False

    def reset(self) -> None:
        self.missed_attempts = 0
        self.collected = False


@dataclass(eq=False)
class TargetHandle:
    """The live target entity owned by the sequence engine."""
    entity_id: int
    index: int
    frequency: float
    color: Color
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    tolerance_hz: float = 5.0

    @property
    def height(self) -> float:
        return float(self.position[1])


# (frequency Hz, color) pairs
SEQUENCES: Dict[str, List[Tuple[float, Color]]] = {
    # Pentatonic climb C3 → C5, back to C4. Reaches 523 Hz, so raise
    # range.max_frequency when using it.
    "pentatonic_range": [
        (130.81, SKY),      # C3
        (155.56, GREEN),    # Eb3
        (174.61, YELLOW),   # F3
        (196.00, ORANGE),   # G3
        (233.08, RED),      # Bb3
        (261.63, SKY),      # C4
        (311.13, GREEN),    # Eb4
        (349.23, YELLOW),   # F4
        (392.00, ORANGE),   # G4
        (466.16, RED),      # Bb4
        (523.25, SKY),      # C5
        (261.63, SKY),      # C4
    ],
    # Short arch for warming up: A2 → F3 → A2
    "warmup": [
        (110.00, BLUE),     # A2
        (130.81, GREEN),    # C3
        (146.83, YELLOW),   # D3
        (174.61, RED),      # F3
        (146.83, YELLOW),   # D3
        (130.81, GREEN),    # C3
        (110.00, BLUE),     # A2
    ],
}


def build_sequence(name: str) -> List[Target]:
    """Fresh Target list for one of the built-in sequences."""
    key = (name or "").strip().lower()
    if key not in SEQUENCES:
        raise ConfigurationError(
            f"unknown sequence {name!r}; choose from {sorted(SEQUENCES)}")
    return [Target(frequency=f, color=c) for f, c in SEQUENCES[key]]


def sequence_from_frequencies(frequencies, color: Color = SKY) -> List[Target]:
    return [Target(frequency=float(f), color=color) for f in frequencies]
