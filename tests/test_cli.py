import hashlib
import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

from kbvbt import cli
from kbvbt.vision.cache import save_landmark_frames

from synthetic import landmark_frame, standing_landmarks


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.recording = self.tmp / "session.jsonl"
        save_landmark_frames(
            self.recording, [landmark_frame(i, standing_landmarks()) for i in range(60)]
        )

    def _run(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with mock.patch.object(cli.logging, "basicConfig"), redirect_stdout(out), redirect_stderr(err):
            code = cli.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_analyze_prints_summary(self) -> None:
        code, out, _ = self._run("analyze", str(self.recording), "--mass", "24")
        self.assertEqual(code, 0)
        self.assertIn("sets: 0, reps: 0", out)
        self.assertIn("bell: 24 kg", out)
        digest = hashlib.sha256(self.recording.read_bytes()).hexdigest()
        self.assertIn(f"Recording session.jsonl (sha256 {digest[:12]})", out)

    def test_config_file_and_hand(self) -> None:
        config_path = self.tmp / "config.json"
        config_path.write_text(json.dumps({"implement_mass": 12}), encoding="utf-8")
        args = cli.parse_args(["analyze", str(self.recording), "--config", str(config_path), "--hand", "left"])
        config = cli.build_config(args)
        self.assertEqual(config.implement_mass, 12)
        self.assertEqual(config.tracking.dominant_hand, "left")

    def test_missing_recording_exits_2(self) -> None:
        code, out, err = self._run("analyze", str(self.tmp / "missing.jsonl"))
        self.assertEqual(code, 2)
        self.assertEqual(out, "")
        self.assertIn("Recording not found", err)

    def test_bad_mass_exits_2(self) -> None:
        code, _, err = self._run("analyze", str(self.recording), "--mass", "-1")
        self.assertEqual(code, 2)
        self.assertIn("--mass", err)

    def test_malformed_recording_exits_2(self) -> None:
        with self.recording.open("a", encoding="utf-8") as fh:
            fh.write("garbage\n")
        code, _, err = self._run("analyze", str(self.recording))
        self.assertEqual(code, 2)
        self.assertIn(":61:", err)

    def test_short_landmark_frame_exits_2(self) -> None:
        save_landmark_frames(self.recording, [landmark_frame(0, standing_landmarks()[:5])])
        code, _, err = self._run("analyze", str(self.recording))
        self.assertEqual(code, 2)
        self.assertIn("expected 33 landmarks", err)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
