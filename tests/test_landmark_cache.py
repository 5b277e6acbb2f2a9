import hashlib
import tempfile
import unittest
from pathlib import Path

from kbvbt.vision import cache
from kbvbt.vision.keypoints import LandmarkFrame, PoseLandmark


def sample_frames():
    return [
        LandmarkFrame(
            frame_index=0,
            timestamp=0.0,
            landmarks=[PoseLandmark(x=0.1, y=0.2, z=0.3, visibility=0.9)],
            score=0.8,
        ),
        LandmarkFrame(
            frame_index=1,
            timestamp=33.0,
            landmarks=[PoseLandmark(x=0.4, y=0.5, z=0.6, visibility=0.8)],
            score=None,
        ),
    ]


class LandmarkRecordingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "nested" / "session.jsonl"

    def test_recording_sha256_matches_hashlib(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_bytes(b"abc123")
        self.assertEqual(cache.recording_sha256(self.path), hashlib.sha256(b"abc123").hexdigest())

    def test_save_and_load(self) -> None:
        frames = sample_frames()
        written = cache.save_landmark_frames(self.path, frames)
        self.assertEqual(written, self.path)
        self.assertEqual(list(cache.load_landmark_frames(self.path)), frames)

    def test_refuses_to_overwrite(self) -> None:
        cache.save_landmark_frames(self.path, sample_frames())
        with self.assertRaises(FileExistsError):
            cache.save_landmark_frames(self.path, sample_frames(), overwrite=False)

    def test_blank_lines_are_skipped(self) -> None:
        cache.save_landmark_frames(self.path, sample_frames())
        text = self.path.read_text(encoding="utf-8")
        self.path.write_text("\n" + text.replace("\n", "\n\n"), encoding="utf-8")
        self.assertEqual(len(list(cache.load_landmark_frames(self.path))), 2)

    def test_malformed_line_reports_line_number(self) -> None:
        cache.save_landmark_frames(self.path, sample_frames())
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write('{"frame_index": 2}\n')

        with self.assertRaises(cache.RecordingError) as ctx:
            list(cache.load_landmark_frames(self.path))
        self.assertIn(":3:", str(ctx.exception))

    def test_invalid_json_is_a_recording_error(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("not json\n", encoding="utf-8")
        with self.assertRaises(cache.RecordingError):
            next(cache.load_landmark_frames(self.path))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
