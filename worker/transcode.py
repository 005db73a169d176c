import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from django.conf import settings

from .results import FailureKind, Ok, Result, TranscodeFailure

logger = logging.getLogger(__name__)


def _text(stream) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def build_command(executable: str, source_path: Path, dest_path: Path, preset: str) -> list:
    """<tool> -i <input> -o <output> --preset <name>"""
    return [
        executable,
        "-i", str(source_path),
        "-o", str(dest_path),
        "--preset", preset,
    ]


class Transcoder:
    """Runs the external transcoder (HandBrakeCLI by default) once per rendition."""

    def __init__(self, executable: Optional[str] = None, timeout: Optional[float] = None):
        self.executable = executable or settings.TRANSCODER_BIN
        timeout = settings.TRANSCODER_TIMEOUT_SECONDS if timeout is None else timeout
        self.timeout = timeout or None  # 0 -> no limit

    def locate(self) -> Optional[str]:
        return shutil.which(self.executable)

    def is_available(self) -> bool:
        return self.locate() is not None

    def transcode(self, source_path: Path, dest_path: Path, preset: str) -> Result:
        executable = self.locate()
        if executable is None:
            return TranscodeFailure(
                kind=FailureKind.TOOL_NOT_FOUND,
                message=f"{self.executable} is not in the current path, maybe it's not installed?",
                detail={"executable": self.executable},
            )
        source_path = Path(source_path)
        if not source_path.exists():
            return TranscodeFailure(
                kind=FailureKind.SOURCE_MISSING,
                message=f"Source file {source_path} not found.",
                detail={"source": str(source_path)},
            )

        cmd = build_command(executable, source_path, dest_path, preset)
        logger.info(f"Running transcoder: {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            # subprocess.run kills the child before re-raising
            return TranscodeFailure(
                kind=FailureKind.TIMED_OUT,
                message=f"{self.executable} did not finish within {self.timeout} seconds and was killed.",
                detail={"timeout": self.timeout, "stdout": _text(e.stdout), "stderr": _text(e.stderr)},
            )
        except OSError as e:
            # found on PATH but not executable
            return TranscodeFailure(
                kind=FailureKind.TOOL_NOT_FOUND,
                message=f"{self.executable} could not be started: {e}",
                detail={"executable": executable, "error": repr(e)},
            )

        stdout, stderr = _text(proc.stdout), _text(proc.stderr)
        logger.debug(f"{self.executable} exited with {proc.returncode};\n\nSTDOUT:\n{stdout}\n\nSTDERR:\n{stderr}")

        if proc.returncode != 0:
            return TranscodeFailure(
                kind=FailureKind.TOOL_EXITED_NON_ZERO,
                message=(
                    f"{self.executable} execution failed with exit code {proc.returncode}.\n\n"
                    f"STDOUT:\n{stdout}\n\nSTDERR:\n{stderr}"
                ),
                detail={"returncode": proc.returncode, "stdout": stdout, "stderr": stderr},
            )
        return Ok(Path(dest_path))
