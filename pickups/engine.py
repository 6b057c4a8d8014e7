# pickups/engine.py
from __future__ import annotations

import itertools
import logging
import math
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from core.errors import ConfigurationError, MissingCollaborator
from core.geometry import WORLD_FORWARD, horizontal_direction, right_of
from core.types import HeadPose
from pickups.approach import ApproachStrategy, TowardPlayerApproach
from pickups.models import Target, TargetHandle
from pickups.range_stats import SessionRangeStats
from pickups.report import CompletionReport
from pitch.mapper import FrequencyHeightMapper, HeightRange

logger = logging.getLogger(__name__)


class SlotState(Enum):
    EMPTY = "empty"
    SPAWNED = "spawned"
    COMPLETE = "complete"


class TargetSequenceEngine:
    """
    Runs a fixed sequence of sung targets, one live target at a time:

      empty → spawned → (collected | missed) → empty ... → complete

      - spawn:   when nothing is live and the cooldown has elapsed, at the
                 mapped height of the current note, spawn_distance ahead
      - miss:    the approach strategy reports the target passed the
                 player; after miss_limit misses the slot is skipped
      - hit:     an external trigger event naming the live target
      - report:  built once the last slot is resolved, handed to the
                 presenter exactly once

    `update(dt)` returns the list of event dicts produced this tick.
    """

    def __init__(
        self,
        sequence: List[Target],
        height_range: HeightRange,
        player_anchor: Optional[Callable[[], Optional[HeadPose]]],
        approach: Optional[ApproachStrategy] = None,
        spawn_distance: float = 10.0,
        lateral_offset: float = 2.0,
        miss_limit: int = 2,
        spawn_cooldown: float = 0.5,
        start_delay: float = 0.0,
        base_frequency: float = 130.81,
        audio=None,
        presenter: Optional[Callable[[CompletionReport], None]] = None,
        range_stats: Optional[SessionRangeStats] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        if not sequence:
            raise ConfigurationError("target sequence is empty")
        if player_anchor is None:
            raise MissingCollaborator("player anchor")
        if int(miss_limit) < 1:
            raise ConfigurationError(f"miss_limit must be >= 1, got {miss_limit}")
        if spawn_distance <= 0:
            raise ConfigurationError(f"spawn_distance must be > 0, got {spawn_distance}")
        if spawn_cooldown < 0 or start_delay < 0 or lateral_offset < 0:
            raise ConfigurationError("cooldown, start delay and lateral offset must be >= 0")
        if base_frequency <= 0:
            raise ConfigurationError(f"base_frequency must be > 0, got {base_frequency}")

        self.sequence = list(sequence)
        self.mapper = FrequencyHeightMapper(height_range)
        self.approach = approach if approach is not None else TowardPlayerApproach()
        self.spawn_distance = float(spawn_distance)
        self.lateral_offset = float(lateral_offset)
        self.miss_limit = int(miss_limit)
        self.spawn_cooldown = float(spawn_cooldown)
        self.base_frequency = float(base_frequency)

        self.audio = audio
        self.presenter = presenter
        self.rng = rng if rng is not None else np.random.default_rng()

        self.stats = range_stats if range_stats is not None else SessionRangeStats()
        self.stats.reset()

        # Sequence state
        self.current_index = 0
        self.active_target: Optional[TargetHandle] = None
        self.complete = False
        self.next_spawn_allowed_at = float(start_delay)
        self.now = 0.0
        self.report: Optional[CompletionReport] = None

        self._player_anchor = player_anchor
        self._ids = itertools.count(1)
        self._tick = 0
        self._collection_tick: Optional[int] = None
        self._report_delivered = False
        self._stopped = False

        logger.info("Target sequence ready: %d notes, miss_limit=%d, cooldown=%.2fs",
                    len(self.sequence), self.miss_limit, self.spawn_cooldown)

    # ---------------------------------------------------------
    # Read-only views
    # ---------------------------------------------------------
    @property
    def slot_state(self) -> SlotState:
        if self.complete:
            return SlotState.COMPLETE
        if self.active_target is not None:
            return SlotState.SPAWNED
        return SlotState.EMPTY

    @property
    def current_target(self) -> Optional[Target]:
        if 0 <= self.current_index < len(self.sequence):
            return self.sequence[self.current_index]
        return None

    @property
    def target_frequency(self) -> Optional[float]:
        target = self.current_target
        return target.frequency if target is not None else None

    @property
    def hit_count(self) -> int:
        return sum(1 for t in self.sequence if t.collected)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def initialize(self, height_range: HeightRange) -> None:
        """Use a new range for subsequent spawns (live target keeps its height)."""
        self.mapper.initialize(height_range)

    # ---------------------------------------------------------
    # Per-tick update
    # ---------------------------------------------------------
    def update(self, dt: float) -> List[dict]:
        events: List[dict] = []

        dt = float(dt)
        if not math.isfinite(dt) or dt < 0:
            logger.debug("Ignoring invalid dt=%r", dt)
            dt = 0.0
        self.now += dt
        self._tick += 1

        if self._stopped:
            return events

        if not self.complete:
            pose = self._player_anchor()
            if pose is None:
                return events

            if self.active_target is not None:
                self._move_active(pose, dt, events)
            elif self.now >= self.next_spawn_allowed_at:
                events.append(self._spawn(pose))

        if self.complete:
            self._deliver_report(events)
        return events

    def _move_active(self, pose: HeadPose, dt: float, events: List[dict]) -> None:
        handle = self.active_target
        handle.position = self.approach.advance(handle.position, pose.position, dt)
        if self.approach.has_passed(handle.position, pose):
            self._register_miss(events)

    # ---------------------------------------------------------
    # Spawn
    # ---------------------------------------------------------
    def _spawn(self, pose: HeadPose) -> dict:
        index = self.current_index
        target = self.sequence[index]
        height = self.mapper.map(target.frequency)

        forward = horizontal_direction(pose.forward)
        if not forward.any():
            forward = WORLD_FORWARD.copy()
        position = pose.position + forward * self.spawn_distance
        if self.lateral_offset > 0:
            offset = float(self.rng.uniform(-self.lateral_offset, self.lateral_offset))
            position = position + right_of(forward) * offset
        position[1] = height

        handle = TargetHandle(
            entity_id=next(self._ids),
            index=index,
            frequency=target.frequency,
            color=target.color,
            position=position,
            tolerance_hz=target.tolerance_hz,
        )
        self.active_target = handle

        if self.audio is not None:
            self.audio.play_drone(target.frequency / self.base_frequency)

        logger.info("Spawning target %d/%d: freq=%.1fHz height=%.2fm id=%d",
                    index + 1, len(self.sequence), target.frequency, height,
                    handle.entity_id)
        return {
            "event": "spawned",
            "index": index,
            "entity_id": handle.entity_id,
            "frequency": target.frequency,
            "height": height,
        }

    # ---------------------------------------------------------
    # Miss
    # ---------------------------------------------------------
    def _register_miss(self, events: List[dict]) -> None:
        index = self.current_index
        target = self.sequence[index]
        target.missed_attempts += 1
        handle = self._destroy_active()

        logger.info("Target %d missed (%d attempts) at height %.2f",
                    index + 1, target.missed_attempts, handle.height)
        events.append({
            "event": "missed",
            "index": index,
            "entity_id": handle.entity_id,
            "attempts": target.missed_attempts,
            "frequency": target.frequency,
        })

        if target.missed_attempts >= self.miss_limit:
            logger.info("Moving on after %d failed attempts at %.1fHz",
                        target.missed_attempts, target.frequency)
            events.extend(self._advance())

        self.next_spawn_allowed_at = self.now + self.spawn_cooldown

    # ---------------------------------------------------------
    # Hit (external trigger)
    # ---------------------------------------------------------
    def on_trigger_enter(self, entity) -> dict:
        """
        Collection event for a target entity (handle or entity id).

        Stale, duplicate or mismatched events are ignored; at most one
        collection takes effect per tick.
        """
        entity_id = getattr(entity, "entity_id", entity)

        if self._collection_tick == self._tick:
            logger.debug("Ignoring collection of %r: already processed this tick", entity_id)
            return _ignored("already_processed", entity_id)
        if self._stopped:
            return _ignored("stopped", entity_id)
        if self.complete:
            logger.debug("Ignoring collection of %r: sequence complete", entity_id)
            return _ignored("complete", entity_id)
        if self.active_target is None:
            logger.debug("Ignoring collection of %r: no active target", entity_id)
            return _ignored("no_active_target", entity_id)
        if entity_id != self.active_target.entity_id:
            logger.warning("Collected entity %r is not the active target %d",
                           entity_id, self.active_target.entity_id)
            return _ignored("not_active", entity_id)

        self._collection_tick = self._tick
        index = self.current_index
        target = self.sequence[index]

        self.stats.record(target.frequency)
        target.collected = True
        handle = self._destroy_active()
        self.next_spawn_allowed_at = self.now + self.spawn_cooldown

        if self.audio is not None:
            self.audio.play_success()

        logger.info("Collected target %d/%d (%.1fHz)",
                    index + 1, len(self.sequence), target.frequency)
        self._advance()

        return {
            "event": "collected",
            "index": index,
            "entity_id": handle.entity_id,
            "frequency": target.frequency,
            "complete": self.complete,
        }

    collect = on_trigger_enter

    # ---------------------------------------------------------
    # Advance / completion
    # ---------------------------------------------------------
    def _advance(self) -> List[dict]:
        self.current_index += 1
        events = [{"event": "advanced", "index": self.current_index}]
        logger.debug("Advanced to index %d of %d", self.current_index, len(self.sequence))

        if self.current_index >= len(self.sequence):
            self.complete = True
            if self.audio is not None:
                self.audio.stop_drone()
            logger.info("Target sequence complete")
        return events

    def _deliver_report(self, events: List[dict]) -> None:
        if self._report_delivered:
            return
        self._report_delivered = True
        self.report = CompletionReport.from_stats(self.stats, len(self.sequence))
        logger.info("%s", self.report.to_text())
        if self.presenter is not None:
            self.presenter(self.report)
        events.append({"event": "complete", "report": self.report})

    def _destroy_active(self) -> TargetHandle:
        handle = self.active_target
        self.active_target = None
        return handle

    # ---------------------------------------------------------
    # Teardown
    # ---------------------------------------------------------
    def teardown(self) -> None:
        """Stop spawning and silence audio; `complete` is left as is."""
        if self._stopped:
            return
        self._stopped = True
        if self.active_target is not None:
            self._destroy_active()
        if self.audio is not None:
            self.audio.stop_all()
        logger.info("Target sequence torn down at index %d (complete=%s)",
                    self.current_index, self.complete)


def _ignored(reason: str, entity_id) -> dict:
    return {"event": "ignored", "reason": reason, "entity_id": entity_id}
