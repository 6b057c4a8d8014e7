# flight/locomotion.py
from dataclasses import dataclass

import numpy as np

from core.geometry import horizontal_direction, inverse_lerp, signed_tilt_degrees

CRUISE_FRACTION = 0.3   # always moving forward at this share of max speed
BOOST_FRACTION = 0.7    # extra share unlocked by leaning forward


@dataclass
class TiltLocomotion:
    """
    Head-tilt driven forward motion.

      tilt > deadzone   → cruise + boost scaled by tilt toward tilt_range
      tilt < -deadzone  → cruise scaled down to 0 as tilt nears -tilt_range
      otherwise         → cruise speed
    """
    max_speed: float = 2.0
    deadzone_deg: float = 5.0
    range_deg: float = 45.0

    def speed_for_tilt(self, tilt_deg: float) -> float:
        speed = self.max_speed * CRUISE_FRACTION
        if tilt_deg > self.deadzone_deg:
            scale = inverse_lerp(self.deadzone_deg, self.range_deg, tilt_deg)
            speed += self.max_speed * BOOST_FRACTION * scale
        elif tilt_deg < -self.deadzone_deg:
            scale = inverse_lerp(-self.deadzone_deg, -self.range_deg, tilt_deg)
            speed *= 1.0 - scale
        return speed

    def step(self, pose, dt: float) -> np.ndarray:
        """Horizontal displacement for this tick, along the gaze direction."""
        if dt <= 0:
            return np.zeros(3)
        tilt = signed_tilt_degrees(pose.up, pose.forward)
        direction = horizontal_direction(pose.forward)
        return direction * self.speed_for_tilt(tilt) * dt
