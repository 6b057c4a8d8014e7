# vocal_session.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from core.config import GameConfig
from core.errors import ConfigurationError, MissingCollaborator
from core.types import HeadPose, LatestPitchFeed, coerce_sample
from flight.height_controller import HeightController
from flight.locomotion import TiltLocomotion
from pickups.approach import build_approach
from pickups.engine import TargetSequenceEngine
from pickups.models import Color, Target, build_sequence
from pickups.range_stats import RangeStatsStore, SessionRangeStats
from pickups.report import CompletionReport, ContinueTrigger
from pitch.mapper import HeightRange
from pitch.smoothing import PitchSmoother
from telemetry.plotter import TraceRecorder
from telemetry.proximity import HeightTelemetry, ProximityFeedback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetView:
    """Read-only copy of the live target for rendering and audio glue."""
    entity_id: int
    position: np.ndarray
    color: Color
    frequency: float


class VocalSession:
    """
    One pass through a target sequence.

    Owns tick time and wires every component by explicit injection:
      feed → HeightController → TargetSequenceEngine → telemetry

    Invalid configuration or missing collaborators never raise out of
    the constructor: the affected part is left disabled and `diagnostic`
    holds the first reason.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        head_anchor: Optional[Callable[[], Optional[HeadPose]]] = None,
        pitch_feed=None,
        ground_probe=None,
        audio=None,
        presenter: Optional[Callable[[CompletionReport], None]] = None,
        stats_store: Optional[RangeStatsStore] = None,
        sequence: Optional[List[Target]] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config if config is not None else GameConfig()
        cfg = self.config

        self.feed = pitch_feed if pitch_feed is not None else LatestPitchFeed(cfg.stream.stale_after)
        self.audio = audio
        self.presenter = presenter
        self.stats = SessionRangeStats()
        self.stats_store = (stats_store if stats_store is not None
                            else RangeStatsStore(cfg.persistence.stats_path))
        self.continue_trigger = ContinueTrigger()

        self.pitch_smoother = PitchSmoother(min_confidence=cfg.envelope.min_confidence)
        self.display_frequency: Optional[float] = None
        self.recorder = TraceRecorder(cfg.telemetry.trace_length)
        self.proximity = ProximityFeedback(
            proximity_threshold=cfg.telemetry.proximity_threshold,
            log_cooldown=cfg.telemetry.log_cooldown,
        )
        self.height_telemetry: Optional[HeightTelemetry] = None

        self.now = 0.0
        self.report: Optional[CompletionReport] = None
        self.saved = False
        self.diagnostic: Optional[str] = None
        self.controller: Optional[HeightController] = None
        self.engine: Optional[TargetSequenceEngine] = None
        self._torn_down = False

        try:
            cfg.validate()
        except ConfigurationError as e:
            self._fail(f"configuration: {e}")
            return

        height_range = cfg.height_range()
        self.controller = HeightController(
            height_range,
            pitch_source=self.feed,
            head_anchor=head_anchor,
            envelope_config=cfg.envelope,
            locomotion=TiltLocomotion(
                max_speed=cfg.locomotion.max_tilt_speed,
                deadzone_deg=cfg.locomotion.tilt_deadzone_deg,
                range_deg=cfg.locomotion.tilt_range_deg,
            ),
            ground_probe=ground_probe,
            terrain_buffer=cfg.range.terrain_buffer,
        )
        if self.controller.disabled and self.diagnostic is None:
            # Already logged by the controller
            self.diagnostic = self.controller.diagnostic

        self.height_telemetry = HeightTelemetry(
            self.controller.mapper, interval=cfg.telemetry.height_log_interval)

        try:
            self.engine = self._build_engine(height_range, head_anchor, sequence, rng)
        except (ConfigurationError, MissingCollaborator) as e:
            self._fail(f"target sequence: {e}")

    def _build_engine(self, height_range, head_anchor, sequence, rng):
        seq = self.config.sequence
        targets = sequence if sequence is not None else build_sequence(seq.sequence)
        approach = build_approach(seq.approach_mode, seq.approach_speed,
                                  seq.spawn_distance, seq.miss_distance)
        if rng is None:
            rng = np.random.default_rng(seq.seed)
        player_anchor = self.controller.head_pose if head_anchor is not None else None
        return TargetSequenceEngine(
            targets,
            height_range,
            player_anchor,
            approach=approach,
            spawn_distance=seq.spawn_distance,
            lateral_offset=seq.lateral_offset,
            miss_limit=seq.miss_limit,
            spawn_cooldown=seq.spawn_cooldown,
            start_delay=seq.start_delay,
            base_frequency=seq.base_frequency,
            audio=self.audio,
            presenter=self._on_report,
            range_stats=self.stats,
            rng=rng,
        )

    def _fail(self, reason: str) -> None:
        logger.error("VocalSession: %s", reason)
        if self.diagnostic is None:
            self.diagnostic = reason

    # ---------------------------------------------------------
    # State
    # ---------------------------------------------------------
    @property
    def flight_disabled(self) -> bool:
        return self.controller is None or self.controller.disabled

    @property
    def sequence_disabled(self) -> bool:
        return self.engine is None

    @property
    def disabled(self) -> bool:
        return self.flight_disabled or self.sequence_disabled

    @property
    def complete(self) -> bool:
        return self.engine is not None and self.engine.complete

    def initialize(self, height_range: HeightRange) -> None:
        """Replace the range held by every consumer; call between ticks."""
        if self.controller is not None:
            self.controller.initialize(height_range)
        if self.engine is not None:
            self.engine.initialize(height_range)

    # ---------------------------------------------------------
    # Exposed to rendering / audio glue
    # ---------------------------------------------------------
    @property
    def player_position(self) -> Optional[np.ndarray]:
        if self.controller is None:
            return None
        return self.controller.position.copy()

    @property
    def player_height(self) -> Optional[float]:
        if self.controller is None:
            return None
        return self.controller.height

    @property
    def active_target(self) -> Optional[TargetView]:
        if self.engine is None or self.engine.active_target is None:
            return None
        handle = self.engine.active_target
        return TargetView(
            entity_id=handle.entity_id,
            position=handle.position.copy(),
            color=handle.color,
            frequency=handle.frequency,
        )

    @property
    def target_frequency(self) -> Optional[float]:
        if self.engine is None or self.engine.complete:
            return None
        return self.engine.target_frequency

    # ---------------------------------------------------------
    # Per-tick update
    # ---------------------------------------------------------
    def push_sample(self, sample) -> None:
        """Producer side of the pitch feed."""
        self.feed.push(sample)

    def tick(self, dt: float) -> List[dict]:
        if self._torn_down:
            return []

        dt = float(dt)
        if not math.isfinite(dt) or dt < 0:
            logger.debug("Ignoring invalid dt=%r", dt)
            dt = 0.0
        self.now += dt

        feed_tick = getattr(self.feed, "tick", None)
        if feed_tick is not None:
            feed_tick(dt)

        if self.controller is None:
            return []

        height = self.controller.update(dt)
        events = self.engine.update(dt) if self.engine is not None else []

        sample = coerce_sample(self.feed())
        self._update_display_frequency(sample)
        self._update_telemetry(sample, height)
        self._handle_continue()
        return events

    def _update_display_frequency(self, sample) -> None:
        if sample.is_voiced(self.config.envelope.min_confidence):
            self.display_frequency = self.pitch_smoother.update(
                sample.frequency, sample.confidence)
        else:
            self.pitch_smoother.reset()
            self.display_frequency = None

    def _update_telemetry(self, sample, height: float) -> None:
        handle = self.engine.active_target if self.engine is not None else None
        target_frequency = handle.frequency if handle is not None else None

        self.proximity.update(self.now, self.controller.position, handle, sample)
        self.height_telemetry.update(self.now, height, sample, target_frequency)
        self.recorder.record(
            self.now,
            height,
            target_height=handle.height if handle is not None else None,
            envelope=self.controller.envelope_value,
            voice_frequency=sample.frequency if sample.is_voiced() else None,
            target_frequency=target_frequency,
        )

    # ---------------------------------------------------------
    # Events from collaborators
    # ---------------------------------------------------------
    def on_trigger_enter(self, entity) -> dict:
        if self.engine is None:
            return {"event": "ignored", "reason": "disabled",
                    "entity_id": getattr(entity, "entity_id", entity)}
        return self.engine.on_trigger_enter(entity)

    def _on_report(self, report: CompletionReport) -> None:
        self.report = report
        if self.presenter is not None:
            self.presenter(report)

    def press_continue(self) -> bool:
        """UI side of the continue button; only meaningful once complete."""
        if self.report is None:
            logger.debug("Continue pressed before completion; ignored")
            return False
        return self.continue_trigger.fire()

    def _handle_continue(self) -> None:
        if not self.continue_trigger.consume():
            return
        try:
            self.stats_store.save(self.stats.summary())
            self.saved = True
        except OSError as e:
            logger.error("Could not save vocal range: %s", e)

    # ---------------------------------------------------------
    # Teardown
    # ---------------------------------------------------------
    def teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        if self.engine is not None:
            self.engine.teardown()
        elif self.audio is not None:
            self.audio.stop_all()
        logger.info("VocalSession torn down at t=%.2fs", self.now)
