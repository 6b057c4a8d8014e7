# pickups/report.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from pickups.range_stats import SessionRangeStats
from utils.music_utils import hz_to_note_name


@dataclass(frozen=True)
class CompletionReport:
    lowest: Optional[float]
    highest: Optional[float]
    hit_count: int
    total_count: int
    success_rate: float
    hit_frequencies: List[float] = field(default_factory=list)

    @classmethod
    def from_stats(cls, stats: SessionRangeStats, total_count: int) -> "CompletionReport":
        total = int(total_count)
        hits = stats.hit_count
        rate = hits / total * 100.0 if total > 0 else 0.0
        return cls(
            lowest=stats.lowest_hit_frequency,
            highest=stats.highest_hit_frequency,
            hit_count=hits,
            total_count=total,
            success_rate=rate,
            hit_frequencies=list(stats.hit_frequencies),
        )

    def as_dict(self) -> dict:
        return {
            "lowest": self.lowest,
            "highest": self.highest,
            "hit_count": self.hit_count,
            "total_count": self.total_count,
            "success_rate": self.success_rate,
        }

    def to_text(self) -> str:
        lines = ["Vocal Range Assessment", ""]
        if self.hit_count > 0:
            lines.append(f"Lowest Note: {_fmt_note(self.lowest)}")
            lines.append(f"Highest Note: {_fmt_note(self.highest)}")
        else:
            lines.append("No successful notes recorded")
        lines.append("")
        lines.append(f"Notes Hit: {self.hit_count} out of {self.total_count}")
        lines.append(f"Success Rate: {self.success_rate:.1f}%")
        return "\n".join(lines)


def _fmt_note(freq) -> str:
    name = hz_to_note_name(freq)
    if name is None:
        return f"{freq:.1f} Hz"
    return f"{freq:.1f} Hz ({name})"


class ContinueTrigger:
    """One-shot flag: set by UI glue, consumed once by session glue."""

    def __init__(self):
        self._armed = False
        self._fired = False

    def fire(self) -> bool:
        if self._fired:
            return False
        self._armed = True
        self._fired = True
        return True

    def consume(self) -> bool:
        if not self._armed:
            return False
        self._armed = False
        return True

    @property
    def fired(self) -> bool:
        return self._fired
