import hashlib
import logging
import mimetypes
import re
from pathlib import Path
from typing import Optional

from django.conf import settings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def work_dir() -> Path:
    """Directory holding downloaded sources and renditions; created on demand."""
    path = Path(settings.TRANSCODE_WORK_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def temp_path(filename: str) -> Path:
    """Return WORK_DIR/<filename>. The same name always maps to the same path."""
    return work_dir() / filename


def url_digest(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def safe_name(value: str) -> str:
    """Filesystem-safe slug for a preset name ("Fast 1080p30" -> "Fast_1080p30")."""
    slug = _UNSAFE_CHARS.sub("_", value).strip("._")
    return slug or "preset"


def source_temp_path(source_url: str, extension: Optional[str] = None) -> Path:
    """
    Downloaded-source path for a URL: <md5(url)>.<ext>.
    Repeated jobs for the same URL share this path, so a stale partial file is overwritten.
    """
    ext = extension or settings.TRANSCODE_OUTPUT_EXTENSION
    return temp_path(f"{url_digest(source_url)}.{ext}")


def rendition_temp_path(source_url: str, preset: str, extension: Optional[str] = None) -> Path:
    """Rendition path for one preset of a source: <md5(url)>-<preset>.<ext>."""
    ext = extension or settings.TRANSCODE_OUTPUT_EXTENSION
    return temp_path(f"{url_digest(source_url)}-{safe_name(preset)}.{ext}")


def remove_quietly(path: Path) -> bool:
    """Delete a temp artifact if present. Returns True if a file was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not remove temp file {path}: {e}")
        return False
    return True


def guess_content_type(path: str) -> Optional[str]:
    """Return the mimetype for a key or filename, or None when unknown."""
    mime, _ = mimetypes.guess_type(path)
    return mime
