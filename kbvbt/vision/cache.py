"""JSONL recordings of landmark frames.

One :class:`~kbvbt.vision.keypoints.LandmarkFrame` per line. Recordings let a
session captured by an external pose provider be replayed through the
detector offline (see ``kbvbt analyze``).
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from functools import partial
from pathlib import Path
from typing import Iterable, Iterator

from kbvbt.vision.keypoints import LandmarkFrame, PoseLandmark


class RecordingError(RuntimeError):
    """Raised when a recording line cannot be decoded."""


def recording_sha256(path: str | Path, *, chunk_size: int = 1 << 20) -> str:
    """Hex SHA-256 of a recording; printed by ``kbvbt analyze`` to identify the replayed file."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for block in iter(partial(fh.read, chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def _frame_to_json(frame: LandmarkFrame) -> str:
    payload = {
        "frame_index": frame.frame_index,
        "timestamp": frame.timestamp,
        "score": frame.score,
        "landmarks": [asdict(lm) for lm in frame.landmarks],
    }
    return json.dumps(payload)


def _frame_from_obj(obj: dict) -> LandmarkFrame:
    landmarks = [PoseLandmark(**lm) for lm in obj["landmarks"]]
    return LandmarkFrame(
        frame_index=int(obj["frame_index"]),
        timestamp=float(obj["timestamp"]),
        landmarks=landmarks,
        score=obj.get("score"),
    )


def save_landmark_frames(
    path: Path, frames: Iterable[LandmarkFrame], *, overwrite: bool = True
) -> Path:
    """Write landmark frames to a JSONL recording.

    Args:
        path: Destination path for the JSONL file.
        frames: Iterable of LandmarkFrame instances.
        overwrite: Whether to overwrite an existing file.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise FileExistsError(f"Recording already exists: {path}")

    with path.open("w", encoding="utf-8") as fh:
        for frame in frames:
            fh.write(_frame_to_json(frame))
            fh.write("\n")
    return path


def load_landmark_frames(path: Path) -> Iterator[LandmarkFrame]:
    """Read landmark frames from a JSONL recording, skipping blank lines."""
    with path.open("r", encoding="utf-8") as fh:
        for line_number, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                frame = _frame_from_obj(json.loads(line))
            except (ValueError, KeyError, TypeError) as exc:
                raise RecordingError(f"{path}:{line_number}: malformed frame ({exc})") from exc
            yield frame
