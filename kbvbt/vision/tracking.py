"""Turn raw pose landmarks into detector frames.

The builder owns one :class:`VectorEstimator` per tracked landmark and one
:class:`AngleEstimator` per named joint angle. Each :class:`LandmarkFrame`
updates those filters and yields a :class:`~kbvbt.repdetect.models.Frame`
for the dominant hand's wrist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from kbvbt.config import TrackingConfig
from kbvbt.quality.failures import is_visible
from kbvbt.repdetect.models import Frame, Hand
from kbvbt.signals.kalman import AngleEstimator, VectorEstimator, Vector3
from kbvbt.signals.kinematics import ANGLE_NAMES, height_ratio, raw_joint_angles
from kbvbt.vision.keypoints import (
    TRACKED_LANDMARKS,
    LandmarkFrame,
    PoseLandmarkIndex,
)

logger = logging.getLogger(__name__)


class LandmarkError(ValueError):
    """Raised when a landmark frame cannot be interpreted."""


@dataclass(frozen=True)
class TrackedLandmark:
    """Filtered position and velocity of one landmark.

    Attributes:
        position: Filtered position, or the raw one when the landmark was
            not visible this frame.
        velocity: Filtered velocity in normalized units per second; zero when
            not visible.
        visible: Whether the raw landmark passed the visibility gate.
    """

    position: Vector3
    velocity: Vector3
    visible: bool

    @property
    def speed(self) -> float:
        return (self.velocity.x**2 + self.velocity.y**2 + self.velocity.z**2) ** 0.5


_ZERO = Vector3(0.0, 0.0, 0.0)


class FrameBuilder:
    """Filters landmark frames and tracks which hand holds the bell."""

    def __init__(self, config: Optional[TrackingConfig] = None) -> None:
        self.config = config or TrackingConfig()
        self._landmark_filters: Dict[int, VectorEstimator] = {}
        self._angle_filters: Dict[str, AngleEstimator] = {}
        self._tracked: Dict[int, TrackedLandmark] = {}
        self._activity = {Hand.LEFT: 0, Hand.RIGHT: 0}
        self._auto = self.config.dominant_hand == "auto"
        self._dominant_hand = Hand.RIGHT if self._auto else Hand(self.config.dominant_hand)
        self.reset()

    @property
    def dominant_hand(self) -> Hand:
        return self._dominant_hand

    @property
    def tracked_landmarks(self) -> Dict[int, TrackedLandmark]:
        """Filter output of the last built frame, keyed by landmark index."""
        return dict(self._tracked)

    def set_dominant_hand(self, hand: Union[Hand, str]) -> None:
        """Pin the dominant hand; disables auto detection."""
        self._dominant_hand = Hand(hand)
        self._auto = False
        self._activity = {Hand.LEFT: 0, Hand.RIGHT: 0}

    def reset(self) -> None:
        self._landmark_filters = {
            idx: VectorEstimator(self.config.landmark_filter) for idx in TRACKED_LANDMARKS
        }
        self._angle_filters = {
            name: AngleEstimator(self.config.angle_filter) for name in ANGLE_NAMES
        }
        self._tracked = {}
        self._activity = {Hand.LEFT: 0, Hand.RIGHT: 0}

    def build(self, frame: LandmarkFrame) -> Frame:
        """Update every filter with ``frame`` and derive the detector input."""
        landmarks = frame.landmarks
        if len(landmarks) < PoseLandmarkIndex.COUNT:
            raise LandmarkError(
                f"frame {frame.frame_index}: expected {PoseLandmarkIndex.COUNT} landmarks, "
                f"got {len(landmarks)}"
            )

        timestamp = frame.timestamp
        tracked: Dict[int, TrackedLandmark] = {}
        hidden: List[int] = []
        for idx, estimator in self._landmark_filters.items():
            lm = landmarks[idx]
            if is_visible(lm, self.config.min_visibility):
                position, velocity = estimator.update((lm.x, lm.y, lm.z), timestamp)
                tracked[idx] = TrackedLandmark(position, velocity, True)
            else:
                hidden.append(idx)
                tracked[idx] = TrackedLandmark(Vector3(lm.x, lm.y, lm.z), _ZERO, False)
        if hidden:
            logger.debug("frame %d: skipped low-visibility landmarks %s", frame.frame_index, hidden)
        self._tracked = tracked

        angles = {
            name: self._angle_filters[name].update(value, timestamp)[0]
            for name, value in raw_joint_angles(landmarks).items()
        }

        self._update_dominant_hand(tracked)
        wrist_idx = (
            PoseLandmarkIndex.LEFT_WRIST
            if self._dominant_hand is Hand.LEFT
            else PoseLandmarkIndex.RIGHT_WRIST
        )
        wrist = tracked[wrist_idx]

        idx = PoseLandmarkIndex
        shoulder_y = (landmarks[idx.LEFT_SHOULDER].y + landmarks[idx.RIGHT_SHOULDER].y) / 2.0
        hip_y = (landmarks[idx.LEFT_HIP].y + landmarks[idx.RIGHT_HIP].y) / 2.0

        # Image y grows downward; upward bell motion is positive velocity.
        return Frame(
            timestamp=timestamp,
            vertical_velocity=-wrist.velocity.y,
            height_ratio=height_ratio(wrist.position.y, shoulder_y, hip_y),
            joint_angles=angles,
            hand=self._dominant_hand,
        )

    def _update_dominant_hand(self, tracked: Dict[int, TrackedLandmark]) -> None:
        if not self._auto:
            return
        left = tracked[PoseLandmarkIndex.LEFT_WRIST].speed
        right = tracked[PoseLandmarkIndex.RIGHT_WRIST].speed
        margin = self.config.hand_speed_margin
        if left > right + margin:
            self._activity[Hand.LEFT] += 1
        elif right > left + margin:
            self._activity[Hand.RIGHT] += 1

        lead = self.config.hand_activity_lead
        previous = self._dominant_hand
        if self._activity[Hand.LEFT] > self._activity[Hand.RIGHT] + lead:
            self._dominant_hand = Hand.LEFT
        elif self._activity[Hand.RIGHT] > self._activity[Hand.LEFT] + lead:
            self._dominant_hand = Hand.RIGHT
        if self._dominant_hand is not previous:
            logger.info("dominant hand detected: %s", self._dominant_hand.value)
