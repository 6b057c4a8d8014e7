# pickups/approach.py
"""
Target locomotion strategies.

The sequence engine calls `advance` every tick to move the active target
and `has_passed` to decide whether the player let it slip by.
"""
import numpy as np

from core.geometry import horizontal, horizontal_direction, horizontal_distance, vec3


class ApproachStrategy:
    """Base strategy: the target stays put; passed when horizontally close."""

    def __init__(self, miss_distance: float = 0.5):
        self.miss_distance = float(miss_distance)

    def advance(self, target_position, player_position, dt: float) -> np.ndarray:
        return vec3(target_position)

    def has_passed(self, target_position, pose) -> bool:
        return horizontal_distance(target_position, pose.position) < self.miss_distance


class TowardPlayerApproach(ApproachStrategy):
    """
    Target glides toward the player's horizontal position at a fixed
    speed, holding its height. The direction is recomputed each tick so
    the target follows a moving player; it never overshoots.
    """

    def __init__(self, speed: float = 2.0, miss_distance: float = 0.5):
        super().__init__(miss_distance)
        self.speed = float(speed)

    def advance(self, target_position, player_position, dt: float) -> np.ndarray:
        position = vec3(target_position)
        if dt <= 0 or self.speed <= 0:
            return position

        to_player = horizontal(vec3(player_position) - position)
        distance = float(np.linalg.norm(to_player))
        if distance == 0.0:
            return position

        step = min(self.speed * dt, distance)
        height = position[1]
        position = position + to_player / distance * step
        position[1] = height
        return position


class StationaryApproach(ApproachStrategy):
    """
    Target holds its spawn position while the player flies toward it.
    Passed when it drops behind the player's horizontal gaze, comes
    within miss_distance, or ends up farther than max_distance. Both
    distances are horizontal; the target's height never counts.
    """

    def __init__(self, max_distance: float = 20.0, miss_distance: float = 0.5):
        super().__init__(miss_distance)
        self.max_distance = float(max_distance)

    def has_passed(self, target_position, pose) -> bool:
        if super().has_passed(target_position, pose):
            return True
        to_target = vec3(target_position) - pose.position
        if horizontal_distance(target_position, pose.position) > self.max_distance:
            return True
        gaze = horizontal_direction(pose.forward)
        if not gaze.any():
            return False
        return float(np.dot(horizontal(to_target), gaze)) < 0.0


def build_approach(mode: str, speed: float, spawn_distance: float,
                   miss_distance: float) -> ApproachStrategy:
    if mode == "stationary":
        return StationaryApproach(max_distance=2.0 * spawn_distance,
                                  miss_distance=miss_distance)
    return TowardPlayerApproach(speed=speed, miss_distance=miss_distance)
