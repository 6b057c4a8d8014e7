# core/config.py
# Vocal Ascent configuration
# All default values and constants

import json
import logging
import math
from dataclasses import asdict, dataclass, field, is_dataclass
from pathlib import Path
from typing import Optional

from core.errors import ConfigurationError
from pitch.mapper import HeightRange

logger = logging.getLogger(__name__)

APPROACH_MODES = ("toward_player", "stationary")


@dataclass
class RangeConfig:
    """Height / frequency range"""
    base_height: float = 20.0         # Minimum flying height (above terrain)
    max_height: float = 40.0          # Maximum flying height
    min_frequency: float = 80.0       # Lowest tracked frequency (Hz)
    max_frequency: float = 300.0      # Highest tracked frequency (Hz)
    terrain_buffer: float = 0.0       # Minimum clearance above probed ground


@dataclass
class EnvelopeConfig:
    """ADSR envelope for voice-driven height"""
    attack_time: float = 0.1
    decay_time: float = 0.1
    sustain_level: float = 1.0
    release_time: float = 0.5
    fall_delay: float = 1.0           # Grace window after voice drops (s)
    min_confidence: float = 0.0       # Samples below this count as silence


@dataclass
class LocomotionConfig:
    """Head-tilt forward motion"""
    max_tilt_speed: float = 2.0       # m/s at full forward tilt
    tilt_deadzone_deg: float = 5.0
    tilt_range_deg: float = 45.0      # Tilt at which speed saturates


@dataclass
class SequenceConfig:
    """Target sequence behaviour"""
    sequence: str = "warmup"
    approach_mode: str = "toward_player"
    approach_speed: float = 2.0       # Units per second
    spawn_distance: float = 10.0      # Distance ahead of the player
    lateral_offset: float = 2.0       # Max random sideways offset (+/-)
    miss_distance: float = 0.5        # Horizontal distance that counts as passed
    miss_limit: int = 2               # Misses before moving to the next note
    spawn_cooldown: float = 0.5       # Delay before the next spawn (hit or miss)
    start_delay: float = 0.0          # Delay before the first spawn
    base_frequency: float = 130.81    # Drone clip pitch (C3)
    seed: Optional[int] = None


@dataclass
class TelemetryConfig:
    proximity_threshold: float = 2.0
    log_cooldown: float = 0.5
    height_log_interval: float = 0.5
    trace_length: int = 4000


@dataclass
class PersistenceConfig:
    stats_path: str = "profiles/vocal_range.json"


@dataclass
class StreamConfig:
    stale_after: Optional[float] = 0.25  # Seconds before a sample counts as absent


@dataclass
class GameConfig:
    range: RangeConfig = field(default_factory=RangeConfig)
    envelope: EnvelopeConfig = field(default_factory=EnvelopeConfig)
    locomotion: LocomotionConfig = field(default_factory=LocomotionConfig)
    sequence: SequenceConfig = field(default_factory=SequenceConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)

    def height_range(self) -> HeightRange:
        """Immutable range value handed to every consumer."""
        r = self.range
        return HeightRange(
            base_height=r.base_height,
            max_height=r.max_height,
            min_frequency=r.min_frequency,
            max_frequency=r.max_frequency,
        )

    def validate(self) -> None:
        """Raise ConfigurationError describing the first invalid field."""
        self.height_range()

        env = self.envelope
        for name in ("attack_time", "decay_time", "release_time"):
            _require(getattr(env, name) > 0, f"envelope.{name} must be > 0")
        _require(0.0 <= env.sustain_level <= 1.0,
                 "envelope.sustain_level must be within [0, 1]")
        _require(env.fall_delay >= 0, "envelope.fall_delay must be >= 0")
        _require(0.0 <= env.min_confidence <= 1.0,
                 "envelope.min_confidence must be within [0, 1]")

        loc = self.locomotion
        _require(loc.max_tilt_speed >= 0, "locomotion.max_tilt_speed must be >= 0")
        _require(0 <= loc.tilt_deadzone_deg < loc.tilt_range_deg,
                 "locomotion.tilt_deadzone_deg must be >= 0 and < tilt_range_deg")

        seq = self.sequence
        _require(seq.approach_mode in APPROACH_MODES,
                 f"sequence.approach_mode must be one of {APPROACH_MODES}")
        _require(seq.approach_speed >= 0, "sequence.approach_speed must be >= 0")
        _require(seq.spawn_distance > 0, "sequence.spawn_distance must be > 0")
        _require(seq.lateral_offset >= 0, "sequence.lateral_offset must be >= 0")
        _require(seq.miss_distance >= 0, "sequence.miss_distance must be >= 0")
        _require(int(seq.miss_limit) >= 1, "sequence.miss_limit must be >= 1")
        _require(seq.spawn_cooldown >= 0, "sequence.spawn_cooldown must be >= 0")
        _require(seq.start_delay >= 0, "sequence.start_delay must be >= 0")
        _require(seq.base_frequency > 0, "sequence.base_frequency must be > 0")

        tel = self.telemetry
        _require(tel.proximity_threshold > 0, "telemetry.proximity_threshold must be > 0")
        _require(tel.log_cooldown >= 0, "telemetry.log_cooldown must be >= 0")
        _require(tel.height_log_interval >= 0, "telemetry.height_log_interval must be >= 0")
        _require(int(tel.trace_length) > 0, "telemetry.trace_length must be > 0")

        stale = self.stream.stale_after
        _require(stale is None or stale >= 0, "stream.stale_after must be >= 0")


def _require(condition, message: str) -> None:
    try:
        ok = bool(condition)
    except (TypeError, ValueError):
        ok = False
    if not ok:
        raise ConfigurationError(message)


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; numeric fields are coerced when possible."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            logger.debug("Ignoring unknown config key %r on %s",
                         key, type(target).__name__)
            continue

        current = getattr(target, key)

        if is_dataclass(current):
            if isinstance(value, dict):
                apply_dict_to_dataclass(current, value)
            else:
                raise ConfigurationError(f"{key} must be an object")
            continue

        if isinstance(current, bool) or value is None:
            setattr(target, key, value)
        elif isinstance(current, int):
            setattr(target, key, _coerce(key, value, int))
        elif isinstance(current, float):
            setattr(target, key, _coerce(key, value, float))
        else:
            setattr(target, key, value)


def _coerce(key, value, kind):
    try:
        out = kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number, got {value!r}")
    if kind is float and not math.isfinite(out):
        raise ConfigurationError(f"{key} must be finite, got {value!r}")
    return out


def config_from_dict(data) -> GameConfig:
    config = GameConfig()
    apply_dict_to_dataclass(config, data)
    config.validate()
    return config


def load_config(path) -> GameConfig:
    """Load config from a JSON file; defaults when the file does not exist."""
    path = Path(path)
    if not path.exists():
        logger.info("No config at %s, using defaults", path)
        return GameConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{path}: invalid JSON ({e})") from e

    config = config_from_dict(data)
    logger.info("Loaded config from %s", path)
    return config


def save_config(config: GameConfig, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(config), f, indent=2)
    logger.info("Saved config to %s", path)
    return path
