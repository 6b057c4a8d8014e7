# telemetry/plotter.py
from collections import deque

import matplotlib.pyplot as plt
import numpy as np

TRACE_FIELDS = (
    "time",
    "player_height",
    "target_height",
    "envelope",
    "voice_frequency",
    "target_frequency",
)


class TraceRecorder:
    """
    Bounded history of per-tick values for offline inspection.
    Missing values (no voice, no target) are stored as NaN so plots
    show gaps instead of dropping to zero.
    """

    def __init__(self, maxlen=4000):
        self.maxlen = int(maxlen)
        self._rows = {name: deque(maxlen=self.maxlen) for name in TRACE_FIELDS}

    def __len__(self):
        return len(self._rows["time"])

    def record(self, time, player_height, target_height=None, envelope=0.0,
               voice_frequency=None, target_frequency=None):
        values = (time, player_height, target_height, envelope,
                  voice_frequency, target_frequency)
        for name, value in zip(TRACE_FIELDS, values):
            self._rows[name].append(np.nan if value is None else float(value))

    def clear(self):
        for row in self._rows.values():
            row.clear()

    def as_arrays(self):
        return {name: np.asarray(row, dtype=float) for name, row in self._rows.items()}


def plot_trace(recorder, ax=None, path=None, title="Pitch flight trace"):
    """
    Plot player height against target height over time, with the voice
    and target frequencies on a twin axis. Saves to `path` when given.
    Returns the figure.
    """
    data = recorder.as_arrays()
    if ax is None:
        fig, ax = plt.subplots(figsize=(9, 5))
    else:
        fig = ax.figure

    t = data["time"]
    ax.plot(t, data["player_height"], label="Player height", color="tab:blue", linewidth=1.5)
    ax.plot(t, data["target_height"], label="Target height", color="tab:red",
            linestyle="--", linewidth=1.2)
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Height (m)")
    ax.set_title(title)
    ax.grid(True, color="#cccccc", alpha=0.8)

    ax_freq = ax.twinx()
    ax_freq.plot(t, data["voice_frequency"], label="Voice", color="tab:green", alpha=0.6)
    ax_freq.plot(t, data["target_frequency"], label="Target note", color="tab:orange",
                 linestyle=":", alpha=0.8)
    ax_freq.set_ylabel("Frequency (Hz)")

    lines, labels = ax.get_legend_handles_labels()
    lines2, labels2 = ax_freq.get_legend_handles_labels()
    ax.legend(lines + lines2, labels + labels2, loc="upper left", fontsize=8)

    fig.tight_layout()
    if path is not None:
        fig.savefig(path)
    return fig
