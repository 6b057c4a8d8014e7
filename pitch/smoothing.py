# pitch/smoothing.py
import math

import numpy as np


# ---------------------------------------------------------
# Critically damped smoothing (spring-damper, explicit velocity)
# ---------------------------------------------------------
def smooth_damp(current, target, velocity, smooth_time, dt,
                max_speed=math.inf):
    """
    Move `current` toward `target` with a critically damped spring.

    Returns (new_value, new_velocity). Works on floats and numpy arrays.
    Never overshoots the target; velocity carries over between calls so
    motion stays continuous when the target or smooth_time changes.
    """
    if dt <= 0:
        return current, velocity

    smooth_time = max(1e-4, float(smooth_time))
    omega = 2.0 / smooth_time
    x = omega * dt
    decay = 1.0 / (1.0 + x + 0.48 * x * x + 0.235 * x * x * x)

    current = np.asarray(current, dtype=float)
    target = np.asarray(target, dtype=float)
    velocity = np.asarray(velocity, dtype=float)

    original_target = target
    change = current - target

    # Limit speed
    max_change = max_speed * smooth_time
    if math.isfinite(max_change):
        length = float(np.linalg.norm(change))
        if length > max_change > 0:
            change = change * (max_change / length)
    target = current - change

    temp = (velocity + omega * change) * dt
    velocity = (velocity - omega * temp) * decay
    output = target + (change + temp) * decay

    # Prevent overshoot
    if float(np.dot(np.ravel(original_target - current),
                    np.ravel(output - original_target))) > 0:
        output = original_target
        velocity = np.zeros_like(velocity)

    if output.ndim == 0:
        return float(output), float(velocity)
    return output, velocity


class CriticallyDampedSmoother:
    """Stateful wrapper around smooth_damp for a scalar signal."""

    def __init__(self, value=0.0, max_speed=math.inf):
        self.current = float(value)
        self.velocity = 0.0
        self.max_speed = max_speed

    def update(self, target, smooth_time, dt):
        self.current, self.velocity = smooth_damp(
            self.current, target, self.velocity, smooth_time, dt,
            max_speed=self.max_speed,
        )
        return self.current

    def reset(self, value=0.0):
        self.current = float(value)
        self.velocity = 0.0


# ---------------------------------------------------------
# Confidence-gated pitch smoothing (for overlays)
# ---------------------------------------------------------
class PitchSmoother:
    """
    EMA smoother for the displayed voice frequency, gated on confidence.
    """

    def __init__(self, alpha=0.25, min_confidence=0.0):
        self.alpha = alpha
        self.min_confidence = min_confidence
        self.current = None

    def update(self, new, confidence=1.0):
        if new is None or not math.isfinite(new) or new <= 0:
            return self.current
        if confidence < self.min_confidence:
            return self.current

        if self.current is None:
            self.current = float(new)
            return self.current

        self.current = self.alpha * new + (1 - self.alpha) * self.current
        return self.current

    def reset(self):
        self.current = None
