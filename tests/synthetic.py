"""Synthetic frame streams shared by the detector-level tests.

Velocities and height ratios are picked to cross the default thresholds of
every phase rule with a clear margin.
"""

from typing import Dict, List, Optional, Tuple

from kbvbt.repdetect.models import Frame
from kbvbt.vision.keypoints import LandmarkFrame, PoseLandmark, PoseLandmarkIndex

STEP_MS = 33.0

LEAD_IN_FRAMES = 5
_LOCKOUT = (0.0, 1.1, 170.0)
_DROP = (-0.5, 1.0, 160.0)
_RETURN = (-0.5, 0.1, 40.0)


def make_frame(timestamp: float, velocity: float, height: float, shoulder: float = 0.0, hand: str = "right") -> Frame:
    return Frame(
        timestamp=timestamp,
        vertical_velocity=velocity,
        height_ratio=height,
        joint_angles={
            f"{hand}_shoulder_abduction": shoulder,
            f"{hand}_elbow": 150.0 + shoulder / 10.0,
            f"{hand}_hip": 170.0 - shoulder / 2.0,
        },
    )


def rep_frames(start: float, peak: float = 1.0, hand: str = "right", lockout_frames: int = 2) -> List[Frame]:
    """One full rep: backswing at ``start`` through drop and return.

    The stream ends in the return phase, so another ``rep_frames`` call at
    ``next_start(start, lockout_frames)`` begins the next rep directly.
    """

    # backswing, hike, pull entry, pull peak, punch
    rows = [
        (-0.5, 0.2, 30.0),
        (0.1, 0.2, 40.0),
        (0.25, 0.4, 60.0),
        (peak, 0.6, 90.0),
        (0.1 * peak, 0.9, 130.0),
    ]
    rows += [_LOCKOUT] * lockout_frames
    rows += [_DROP, _RETURN]
    return [
        make_frame(start + i * STEP_MS, v, h, s, hand) for i, (v, h, s) in enumerate(rows)
    ]


def rep_window_velocities(peak: float = 1.0, lockout_frames: int = 2) -> List[float]:
    """Velocities that fall inside the rep's ``[start, end)`` window."""
    return [-0.5, 0.1, 0.25, peak, 0.1 * peak] + [0.0] * lockout_frames


def rep_end(start: float, lockout_frames: int = 2) -> float:
    """Timestamp of the drop frame, which finalizes the rep."""
    return start + (LEAD_IN_FRAMES + lockout_frames) * STEP_MS


def next_start(start: float, lockout_frames: int = 2) -> float:
    return start + (LEAD_IN_FRAMES + lockout_frames + 2) * STEP_MS


def rest_frames(start: float, duration_ms: float, hand: str = "right") -> List[Frame]:
    """Bell held still at hip height."""
    count = int(duration_ms // STEP_MS) + 1
    return [make_frame(start + i * STEP_MS, 0.0, 0.5, 20.0, hand) for i in range(count)]


def standing_landmarks(overrides: Optional[Dict[int, Tuple[float, float]]] = None) -> List[PoseLandmark]:
    """33 visible landmarks of an upright lifter; ``overrides`` maps index -> (x, y)."""
    idx = PoseLandmarkIndex
    positions = {i: (0.5, 0.5) for i in range(idx.COUNT)}
    positions.update(
        {
            idx.LEFT_SHOULDER: (0.6, 0.3),
            idx.RIGHT_SHOULDER: (0.4, 0.3),
            idx.LEFT_ELBOW: (0.62, 0.45),
            idx.RIGHT_ELBOW: (0.38, 0.45),
            idx.LEFT_WRIST: (0.62, 0.6),
            idx.RIGHT_WRIST: (0.38, 0.6),
            idx.LEFT_HIP: (0.58, 0.6),
            idx.RIGHT_HIP: (0.42, 0.6),
            idx.LEFT_KNEE: (0.58, 0.8),
            idx.RIGHT_KNEE: (0.42, 0.8),
            idx.LEFT_ANKLE: (0.58, 0.95),
            idx.RIGHT_ANKLE: (0.42, 0.95),
        }
    )
    positions.update(overrides or {})
    return [PoseLandmark(x=x, y=y, z=0.0, visibility=0.99) for _, (x, y) in sorted(positions.items())]


def landmark_frame(index: int, landmarks: List[PoseLandmark]) -> LandmarkFrame:
    return LandmarkFrame(frame_index=index, timestamp=index * STEP_MS, landmarks=landmarks)
