import argparse
import logging

import numpy as np

from core.config import load_config
from core.types import HeadPose, PitchSample
from telemetry.plotter import plot_trace
from vocal_session import VocalSession

logger = logging.getLogger(__name__)
if not logger.handlers:
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s"
    )

TICK = 1.0 / 60.0
TRIGGER_RADIUS = 1.0


class ScriptedSinger:
    """
    Synthetic voice: sings the session's current note, limited to its
    own comfortable range, with a little pitch jitter and a short breath
    after every new note.
    """

    def __init__(self, low=95.0, high=270.0, jitter_hz=1.5, breath=0.4, rng=None):
        self.low = low
        self.high = high
        self.jitter_hz = jitter_hz
        self.breath = breath
        self.rng = rng if rng is not None else np.random.default_rng()
        self._breath_left = 0.0

    def new_note(self):
        self._breath_left = self.breath

    def sample(self, target_frequency, dt):
        if target_frequency is None or self._breath_left > 0:
            self._breath_left = max(0.0, self._breath_left - dt)
            return PitchSample()
        freq = float(np.clip(target_frequency, self.low, self.high))
        freq += float(self.rng.normal(0.0, self.jitter_hz))
        return PitchSample(frequency=freq, confidence=0.9, voice_detected=True, amplitude=0.3)


def run(config_path=None, duration=180.0, seed=None, plot_path=None):
    config = load_config(config_path) if config_path else load_config("vocal_ascent.json")
    if seed is not None:
        config.sequence.seed = seed

    rest_pose = HeadPose(position=(0.0, 0.0, 0.0), forward=(0.0, 0.0, 1.0), up=(0.0, 1.0, 0.0))
    session = VocalSession(config, head_anchor=lambda: rest_pose)
    if session.disabled:
        logger.error("Session could not start: %s", session.diagnostic)
        return None

    singer = ScriptedSinger(rng=np.random.default_rng(seed))

    while session.now < duration and session.report is None:
        session.push_sample(singer.sample(session.target_frequency, TICK))
        for event in session.tick(TICK):
            if event["event"] == "spawned":
                singer.new_note()

        target = session.active_target
        if target is not None:
            distance = float(np.linalg.norm(session.player_position - target.position))
            if distance < TRIGGER_RADIUS:
                session.on_trigger_enter(target.entity_id)

    if session.report is None:
        logger.warning("Demo stopped after %.1fs without completing the sequence", session.now)
    else:
        print(session.report.to_text())
        session.press_continue()
        session.tick(TICK)

    if plot_path:
        plot_trace(session.recorder, path=plot_path)
        logger.info("Trace plot written to %s", plot_path)

    session.teardown()
    return session.report


def main():
    p = argparse.ArgumentParser(description="Headless vocal flight demo")
    p.add_argument("--config", default=None, help="JSON config file")
    p.add_argument("--duration", type=float, default=180.0, help="Max simulated seconds")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--plot", default=None, help="Write a height/pitch trace PNG")
    args = p.parse_args()
    run(args.config, duration=args.duration, seed=args.seed, plot_path=args.plot)


if __name__ == "__main__":
    main()
