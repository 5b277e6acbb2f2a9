"""Kinematic signal generation from pose landmarks.

Converts a single set of 2D landmark positions (normalized image coordinates,
y pointing down) into the named joint angles and the wrist height ratio used
by rep detection.
"""

from __future__ import annotations

import math
from typing import Dict, Sequence, Tuple

import numpy as np

from kbvbt.vision.keypoints import PoseLandmark, PoseLandmarkIndex

Point = Tuple[float, float]

ANGLE_NAMES = (
    "left_elbow",
    "right_elbow",
    "left_shoulder",
    "right_shoulder",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "spine",
    "left_shoulder_abduction",
    "right_shoulder_abduction",
)


def angle_key(hand: str, joint: str) -> str:
    """Name of a per-side angle, e.g. ``angle_key("right", "elbow")``."""
    return f"{hand}_{joint}"


def _xy(landmark: PoseLandmark) -> Point:
    return (landmark.x, landmark.y)


def joint_angle(a: Point, b: Point, c: Point) -> float:
    """Angle at ``b`` (degrees, 0..180) formed by the segments b->a and b->c."""
    radians = math.atan2(c[1] - b[1], c[0] - b[0]) - math.atan2(a[1] - b[1], a[0] - b[0])
    angle = abs(math.degrees(radians))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def shoulder_abduction(shoulder: Point, elbow: Point, hip: Point) -> float:
    """Angle between the upper arm and the torso side; ~180 with the arm overhead."""
    arm = np.subtract(elbow, shoulder)
    torso = np.subtract(hip, shoulder)
    mag_arm = float(np.linalg.norm(arm))
    mag_torso = float(np.linalg.norm(torso))
    if mag_arm == 0.0 or mag_torso == 0.0:
        return 0.0
    cosine = float(np.dot(arm, torso)) / (mag_arm * mag_torso)
    return math.degrees(math.acos(max(-1.0, min(1.0, cosine))))


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def spine_angle(
    left_shoulder: Point, right_shoulder: Point, left_hip: Point, right_hip: Point
) -> float:
    """Trunk inclination in degrees; 90 means upright."""
    shoulder_mid = _midpoint(left_shoulder, right_shoulder)
    hip_mid = _midpoint(left_hip, right_hip)
    lean = math.atan2(shoulder_mid[0] - hip_mid[0], hip_mid[1] - shoulder_mid[1])
    return 90.0 - math.degrees(lean)


def height_ratio(wrist_y: float, shoulder_y: float, hip_y: float) -> float:
    """Wrist height with hip level at 0 and shoulder level at 1 (not clamped)."""
    span = hip_y - shoulder_y
    if span == 0:
        return 0.0
    return (hip_y - wrist_y) / span


def raw_joint_angles(landmarks: Sequence[PoseLandmark]) -> Dict[str, float]:
    """Compute every named joint angle from one landmark set (unfiltered)."""
    idx = PoseLandmarkIndex
    p = [_xy(lm) for lm in landmarks]

    angles = {
        "left_elbow": joint_angle(p[idx.LEFT_SHOULDER], p[idx.LEFT_ELBOW], p[idx.LEFT_WRIST]),
        "right_elbow": joint_angle(p[idx.RIGHT_SHOULDER], p[idx.RIGHT_ELBOW], p[idx.RIGHT_WRIST]),
        "left_shoulder": joint_angle(p[idx.LEFT_ELBOW], p[idx.LEFT_SHOULDER], p[idx.LEFT_HIP]),
        "right_shoulder": joint_angle(p[idx.RIGHT_ELBOW], p[idx.RIGHT_SHOULDER], p[idx.RIGHT_HIP]),
        "left_hip": joint_angle(p[idx.LEFT_SHOULDER], p[idx.LEFT_HIP], p[idx.LEFT_KNEE]),
        "right_hip": joint_angle(p[idx.RIGHT_SHOULDER], p[idx.RIGHT_HIP], p[idx.RIGHT_KNEE]),
        "left_knee": joint_angle(p[idx.LEFT_HIP], p[idx.LEFT_KNEE], p[idx.LEFT_ANKLE]),
        "right_knee": joint_angle(p[idx.RIGHT_HIP], p[idx.RIGHT_KNEE], p[idx.RIGHT_ANKLE]),
        "spine": spine_angle(
            p[idx.LEFT_SHOULDER], p[idx.RIGHT_SHOULDER], p[idx.LEFT_HIP], p[idx.RIGHT_HIP]
        ),
        "left_shoulder_abduction": shoulder_abduction(
            p[idx.LEFT_SHOULDER], p[idx.LEFT_ELBOW], p[idx.LEFT_HIP]
        ),
        "right_shoulder_abduction": shoulder_abduction(
            p[idx.RIGHT_SHOULDER], p[idx.RIGHT_ELBOW], p[idx.RIGHT_HIP]
        ),
    }
    return angles
