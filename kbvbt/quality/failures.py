"""Landmark quality checks.

The detector itself has no visibility gate; these helpers let the frame
builder decide which landmarks are trustworthy enough to feed a filter.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from kbvbt.vision.keypoints import PoseLandmark


def is_visible(landmark: PoseLandmark, min_visibility: float = 0.5) -> bool:
    return landmark.visibility > min_visibility


def invisible_landmarks(
    landmarks: Sequence[PoseLandmark],
    indices: Iterable[int],
    min_visibility: float = 0.5,
) -> List[int]:
    """Return the subset of ``indices`` whose landmarks fail :func:`is_visible`."""
    return [idx for idx in indices if not is_visible(landmarks[idx], min_visibility)]
