"""Command-line replay of landmark recordings.

Usage::

    kbvbt analyze session.jsonl --hand auto --mass 24 --config thresholds.json

The recording is pushed through :class:`~kbvbt.vision.tracking.FrameBuilder`
and :class:`~kbvbt.repdetect.detector.SnatchDetector` exactly as a live
session would be, and a text summary of sets, reps and alerts is printed.
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from kbvbt.config import HAND_CHOICES, DetectorConfig, load_config
from kbvbt.repdetect.detector import SnatchDetector
from kbvbt.repdetect.models import SessionSnapshot
from kbvbt.vision.cache import RecordingError, load_landmark_frames, recording_sha256
from kbvbt.vision.tracking import FrameBuilder

logger = logging.getLogger(__name__)


def eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="kbvbt",
        description="Velocity-based training analysis for kettlebell snatches.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Replay a JSONL landmark recording and summarize it.")
    analyze.add_argument("recording", help="Path to a JSONL landmark recording")
    analyze.add_argument("--hand", choices=HAND_CHOICES, default=None,
                         help="Working hand; auto follows the faster wrist (default: from config, auto)")
    analyze.add_argument("--mass", type=float, default=None,
                         help="Kettlebell mass in kg (default: from config, 16)")
    analyze.add_argument("--config", default=None,
                         help="Optional JSON file with DetectorConfig overrides")
    analyze.add_argument("-v", "--verbose", action="store_true",
                         help="Log phase transitions and other debug output")

    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> DetectorConfig:
    config = load_config(Path(args.config).expanduser()) if args.config else DetectorConfig()
    if args.mass is not None:
        if math.isnan(args.mass) or args.mass <= 0:
            raise ValueError("--mass must be a positive number of kilograms.")
        config = replace(config, implement_mass=args.mass)
    if args.hand is not None:
        config = replace(config, tracking=replace(config.tracking, dominant_hand=args.hand))
    return config


def analyze(recording: Path, config: DetectorConfig) -> SessionSnapshot:
    """Replay ``recording`` and return the final session snapshot."""
    if not recording.exists():
        raise FileNotFoundError(f"Recording not found: {recording}")

    logger.info("replaying %s", recording)
    builder = FrameBuilder(config.tracking)
    detector = SnatchDetector(config)
    detector.start(builder.dominant_hand)

    for landmark_frame in load_landmark_frames(recording):
        frame = builder.build(landmark_frame)
        if builder.dominant_hand is not detector.hand:
            detector.switch_hand(builder.dominant_hand)
        detector.process_frame(frame)

    return detector.stop()


def format_summary(snapshot: SessionSnapshot) -> str:
    lines = [
        f"Session {snapshot.session_id}",
        f"  duration: {snapshot.duration / 1000.0:.1f} s, bell: {snapshot.implement_mass:g} kg",
        f"  sets: {snapshot.total_sets}, reps: {snapshot.total_reps}",
        f"  velocity: avg {snapshot.average_velocity:.2f}, peak {snapshot.peak_velocity:.2f}",
        f"  power: avg {snapshot.average_power:.0f} W, work {snapshot.total_work:.0f} J",
    ]
    for s in snapshot.sets:
        lines.append(
            f"  set {s.set_number} ({s.hand.value}): {s.total_reps} reps, "
            f"avg velocity {s.average_velocity:.2f}, dropoff {s.velocity_dropoff:.1f}%, "
            f"fatigue {s.fatigue_factor:.2f}"
        )
        for rep in s.reps:
            lines.append(
                f"    rep {rep.rep_number}: peak {rep.peak_velocity:.2f}, "
                f"mean {rep.mean_velocity:.2f}, {rep.power:.0f} W, {rep.duration:.0f} ms"
            )
    if snapshot.fatigue_alerts:
        lines.append("  alerts:")
        for alert in snapshot.fatigue_alerts:
            lines.append(
                f"    [{alert.severity.value}] set {alert.set_number} rep {alert.rep_number}: {alert.message}"
            )
    return "\n".join(lines)


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = build_config(args)
        recording = Path(args.recording).expanduser()
        snapshot = analyze(recording, config)
        digest = recording_sha256(recording)
    except (OSError, ValueError, RecordingError) as ex:
        eprint(f"Error: {ex}")
        return 2

    print(f"Recording {recording.name} (sha256 {digest[:12]})")
    print(format_summary(snapshot))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    return run(parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
