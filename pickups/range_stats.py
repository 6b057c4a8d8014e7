# pickups/range_stats.py
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SessionRangeStats:
    """Lowest/highest successfully hit frequency and the full hit history."""
    lowest_hit_frequency: Optional[float] = None
    highest_hit_frequency: Optional[float] = None
    hit_frequencies: List[float] = field(default_factory=list)

    @property
    def hit_count(self) -> int:
        return len(self.hit_frequencies)

    def record(self, frequency: float) -> None:
        frequency = float(frequency)
        if self.lowest_hit_frequency is None or frequency < self.lowest_hit_frequency:
            self.lowest_hit_frequency = frequency
        if self.highest_hit_frequency is None or frequency > self.highest_hit_frequency:
            self.highest_hit_frequency = frequency
        self.hit_frequencies.append(frequency)

    def reset(self) -> None:
        self.lowest_hit_frequency = None
        self.highest_hit_frequency = None
        self.hit_frequencies.clear()

    def summary(self) -> dict:
        """Payload handed to the persistence sink."""
        return {
            "lowest_frequency": self.lowest_hit_frequency,
            "highest_frequency": self.highest_hit_frequency,
        }


def _atomic_write_json(path, obj):
    """Atomically write JSON to a file."""
    dirpath = os.path.dirname(path) or "."
    os.makedirs(dirpath, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_", dir=dirpath, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            try:
                os.remove(tmp)
            except OSError as e:
                logger.debug("Failed to remove temp file: %s", e)


class RangeStatsStore:
    """Key-value sink for the vocal range summary (one JSON file)."""

    def __init__(self, path):
        self.path = str(path)

    def save(self, summary: dict) -> None:
        payload = {
            "lowest_frequency": summary.get("lowest_frequency"),
            "highest_frequency": summary.get("highest_frequency"),
        }
        _atomic_write_json(self.path, payload)
        low, high = payload["lowest_frequency"], payload["highest_frequency"]
        if low is None or high is None:
            logger.info("Saved vocal range: no successful notes")
        else:
            logger.info("Saved vocal range: %.1fHz to %.1fHz", low, high)

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read vocal range from %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return data
