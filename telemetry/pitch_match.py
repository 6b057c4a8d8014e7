# telemetry/pitch_match.py
from core.types import PitchSample

PERFECT_MATCH_HZ = 2.0
PERFECT_MATCH_CONFIDENCE = 0.8
CLOSE_FACTOR = 3.0

MATCH_COLORS = {
    "matched": (1.0, 0.0, 0.0, 0.8),
    "on_target": (0.0, 1.0, 0.0, 0.8),
    "close": (1.0, 1.0, 0.0, 0.8),
    "far": (0.0, 0.5, 1.0, 0.8),
    "silent": (0.5, 0.5, 0.5, 0.4),
}


def classify_pitch_match(sample: PitchSample, target_frequency, tolerance_hz=5.0,
                         perfect_hz=PERFECT_MATCH_HZ):
    """
    How close the sung pitch is to the target:
      matched   → within perfect_hz and confidence > 0.8
      on_target → within tolerance
      close     → within 3× tolerance
      far       → anything else
      silent    → no voice or no target
    """
    if sample is None or not sample.is_voiced() or target_frequency is None:
        return "silent"
    diff = abs(sample.frequency - float(target_frequency))
    if diff <= perfect_hz and sample.confidence > PERFECT_MATCH_CONFIDENCE:
        return "matched"
    if diff <= tolerance_hz:
        return "on_target"
    if diff <= tolerance_hz * CLOSE_FACTOR:
        return "close"
    return "far"


def match_color(label: str):
    return MATCH_COLORS.get(label, MATCH_COLORS["far"])
