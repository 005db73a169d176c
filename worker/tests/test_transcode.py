"""
Tests for worker/transcode.py
"""

import subprocess
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase

from worker.results import FailureKind, Ok, TranscodeFailure
from worker.transcode import Transcoder, build_command

HANDBRAKE = "/usr/local/bin/HandBrakeCLI"


class TranscoderTest(SimpleTestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.source = Path(tmp.name) / "source.mp4"
        self.source.write_bytes(b"source")
        self.dest = Path(tmp.name) / "source-720p.mp4"

    def test_build_command(self):
        self.assertEqual(
            build_command("HandBrakeCLI", Path("/tmp/in.mp4"), Path("/tmp/out.mp4"), "Fast 720p30"),
            ["HandBrakeCLI", "-i", "/tmp/in.mp4", "-o", "/tmp/out.mp4", "--preset", "Fast 720p30"],
        )

    @patch("worker.transcode.subprocess.run")
    @patch("worker.transcode.shutil.which", return_value=None)
    def test_tool_not_found(self, mock_which, mock_run):
        result = Transcoder(executable="HandBrakeCLI").transcode(self.source, self.dest, "720p")

        self.assertIsInstance(result, TranscodeFailure)
        self.assertEqual(result.kind, FailureKind.TOOL_NOT_FOUND)
        mock_which.assert_called_once_with("HandBrakeCLI")
        mock_run.assert_not_called()

    @patch("worker.transcode.subprocess.run")
    @patch("worker.transcode.shutil.which", return_value=HANDBRAKE)
    def test_source_missing(self, mock_which, mock_run):
        self.source.unlink()

        result = Transcoder(executable="HandBrakeCLI").transcode(self.source, self.dest, "720p")

        self.assertEqual(result.kind, FailureKind.SOURCE_MISSING)
        mock_run.assert_not_called()

    @patch("worker.transcode.subprocess.run")
    @patch("worker.transcode.shutil.which", return_value=HANDBRAKE)
    def test_success(self, mock_which, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=b"Encode done!", stderr=b"")

        result = Transcoder(executable="HandBrakeCLI", timeout=30).transcode(self.source, self.dest, "720p")

        self.assertEqual(result, Ok(self.dest))
        mock_run.assert_called_once_with(
            [HANDBRAKE, "-i", str(self.source), "-o", str(self.dest), "--preset", "720p"],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=30,
        )

    @patch("worker.transcode.subprocess.run")
    @patch("worker.transcode.shutil.which", return_value=HANDBRAKE)
    def test_non_zero_exit(self, mock_which, mock_run):
        mock_run.return_value = MagicMock(returncode=3, stdout=b"scanning", stderr=b"Invalid preset")

        result = Transcoder(executable="HandBrakeCLI").transcode(self.source, self.dest, "nope")

        self.assertEqual(result.kind, FailureKind.TOOL_EXITED_NON_ZERO)
        self.assertEqual(result.detail["returncode"], 3)
        self.assertEqual(result.detail["stdout"], "scanning")
        self.assertEqual(result.detail["stderr"], "Invalid preset")
        self.assertIn("Invalid preset", result.message)

    @patch("worker.transcode.subprocess.run")
    @patch("worker.transcode.shutil.which", return_value=HANDBRAKE)
    def test_timeout(self, mock_which, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=[HANDBRAKE], timeout=5, output=b"50%", stderr=b"")

        result = Transcoder(executable="HandBrakeCLI", timeout=5).transcode(self.source, self.dest, "720p")

        self.assertEqual(result.kind, FailureKind.TIMED_OUT)
        self.assertEqual(result.detail["stdout"], "50%")

    @patch("worker.transcode.subprocess.run")
    @patch("worker.transcode.shutil.which", return_value=HANDBRAKE)
    def test_zero_timeout_means_no_limit(self, mock_which, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=b"", stderr=b"")

        Transcoder(executable="HandBrakeCLI", timeout=0).transcode(self.source, self.dest, "720p")

        self.assertIsNone(mock_run.call_args.kwargs["timeout"])

    @patch("worker.transcode.subprocess.run", side_effect=PermissionError("not executable"))
    @patch("worker.transcode.shutil.which", return_value=HANDBRAKE)
    def test_unstartable_tool(self, mock_which, mock_run):
        result = Transcoder(executable="HandBrakeCLI").transcode(self.source, self.dest, "720p")

        self.assertEqual(result.kind, FailureKind.TOOL_NOT_FOUND)

    def test_defaults_come_from_settings(self):
        with self.settings(TRANSCODER_BIN="ffmpeg-wrapper", TRANSCODER_TIMEOUT_SECONDS=12):
            transcoder = Transcoder()
        self.assertEqual(transcoder.executable, "ffmpeg-wrapper")
        self.assertEqual(transcoder.timeout, 12)
