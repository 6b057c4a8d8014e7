# core/geometry.py
"""
Small vector helpers for a Y-up world (x right, y up, z forward).

All functions accept anything np.asarray understands and return float64
arrays or plain floats.
"""
import numpy as np

WORLD_UP = np.array([0.0, 1.0, 0.0])
WORLD_FORWARD = np.array([0.0, 0.0, 1.0])

_EPS = 1e-9


def vec3(v) -> np.ndarray:
    arr = np.asarray(v, dtype=float).reshape(-1)
    if arr.size != 3:
        raise ValueError(f"expected a 3-vector, got shape {np.shape(v)}")
    return arr.copy()


def horizontal(v) -> np.ndarray:
    """Project onto the ground (X/Z) plane."""
    out = vec3(v)
    out[1] = 0.0
    return out


def normalized(v) -> np.ndarray:
    """Unit vector, or the zero vector when the input has no length."""
    arr = vec3(v)
    n = float(np.linalg.norm(arr))
    if n < _EPS:
        return np.zeros(3)
    return arr / n


def horizontal_direction(forward) -> np.ndarray:
    """Normalized horizontal projection of a gaze direction."""
    return normalized(horizontal(forward))


def horizontal_distance(a, b) -> float:
    return float(np.linalg.norm(horizontal(vec3(b) - vec3(a))))


def right_of(forward) -> np.ndarray:
    """Horizontal right-hand vector for a gaze direction (Y-up, left-handed)."""
    flat = horizontal_direction(forward)
    if not flat.any():
        flat = WORLD_FORWARD.copy()
    # up x forward gives +x for forward=+z
    return normalized(np.cross(WORLD_UP, flat))


def signed_tilt_degrees(up, forward) -> float:
    """
    Signed head tilt in degrees, forward-positive.

    Measures how far the head's up vector leans toward the horizontal
    gaze direction, so the result does not depend on which way the
    player is facing.
    """
    up = normalized(up)
    flat = horizontal_direction(forward)
    if not up.any():
        return 0.0
    if not flat.any():
        # Looking straight up or down: use where the up vector leans
        flat = horizontal_direction(up)
        if not flat.any():
            return 0.0
    lean = float(np.dot(up, flat))
    vertical = float(np.dot(up, WORLD_UP))
    return float(np.degrees(np.arctan2(lean, vertical)))


def inverse_lerp(a: float, b: float, value: float) -> float:
    """Position of value between a and b, clamped to [0, 1]."""
    if abs(b - a) < _EPS:
        return 0.0
    return float(np.clip((value - a) / (b - a), 0.0, 1.0))
