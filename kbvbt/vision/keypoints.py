"""Landmark data types consumed from an external pose provider.

The provider (MediaPipe Pose or similar) runs outside this package; all we
rely on is its output contract: 33 landmarks per frame in normalized image
coordinates with a visibility score each.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class PoseLandmarkIndex:
    """MediaPipe Pose landmark indices (33 total)."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32

    COUNT = 33


# Landmarks that get a position/velocity filter.
TRACKED_LANDMARKS = (
    PoseLandmarkIndex.LEFT_WRIST,
    PoseLandmarkIndex.RIGHT_WRIST,
    PoseLandmarkIndex.LEFT_ELBOW,
    PoseLandmarkIndex.RIGHT_ELBOW,
    PoseLandmarkIndex.LEFT_SHOULDER,
    PoseLandmarkIndex.RIGHT_SHOULDER,
    PoseLandmarkIndex.LEFT_HIP,
    PoseLandmarkIndex.RIGHT_HIP,
    PoseLandmarkIndex.LEFT_KNEE,
    PoseLandmarkIndex.RIGHT_KNEE,
)


@dataclass(frozen=True)
class PoseLandmark:
    """Single pose landmark with visibility score."""

    x: float
    y: float
    z: float
    visibility: float


@dataclass(frozen=True)
class LandmarkFrame:
    """Landmarks for a single frame; ``timestamp`` is monotonic milliseconds."""

    frame_index: int
    timestamp: float
    landmarks: List[PoseLandmark]
    score: Optional[float] = None
