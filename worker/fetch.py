"""
HTTP download of job source media.

Redirects are followed by hand (requests is called with allow_redirects=False)
so that only 302 responses are followed and the hop budget is enforced.
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin, urlsplit

import requests
from django.conf import settings

from .results import DownloadFailure, FailureKind, Ok, Result

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def _is_valid_url(url) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


class Fetcher:
    """Downloads a remote resource to a local path, following a bounded number of 302 redirects."""

    def __init__(self, max_redirects: Optional[int] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.max_redirects = settings.TRANSCODE_FETCH_MAX_REDIRECTS if max_redirects is None else max_redirects
        self.timeout = settings.TRANSCODE_FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self.session = session or requests.Session()

    def fetch(self, source_url: str, dest_path: Path) -> Result:
        dest_path = Path(dest_path)
        url = source_url
        redirects = 0

        while True:
            if not _is_valid_url(url):
                return DownloadFailure(
                    kind=FailureKind.INVALID_URI,
                    message=f"{url} is not a valid download URI",
                    detail={"url": url},
                )

            try:
                response = self.session.get(url, stream=True, allow_redirects=False, timeout=self.timeout)
            except requests.RequestException as e:
                return DownloadFailure(
                    kind=FailureKind.TRANSPORT,
                    message=f"Download request for {url} failed: {e}",
                    detail={"url": url, "error": repr(e)},
                )

            try:
                if response.status_code == 302:
                    location = response.headers.get("Location")
                    if not location:
                        return DownloadFailure(
                            kind=FailureKind.BAD_STATUS,
                            message=f"Download request for {url} returned 302 without a Location header",
                            detail={"url": url, "status_code": 302, "headers": dict(response.headers)},
                        )
                    if redirects >= self.max_redirects:
                        return DownloadFailure(
                            kind=FailureKind.TOO_MANY_REDIRECTS,
                            message=(
                                f"Redirected too many times attempting to download. "
                                f"{redirects} redirects were followed before giving up"
                            ),
                            detail={"url": source_url, "redirects": redirects, "location": location},
                        )
                    next_url = urljoin(url, location)
                    logger.debug(
                        f"Download response was 302. Following redirect to {next_url}, "
                        f"having already followed {redirects} redirects."
                    )
                    url = next_url
                    redirects += 1
                    continue

                if response.status_code == 200:
                    return self._write_body(response, url, dest_path)

                return DownloadFailure(
                    kind=FailureKind.BAD_STATUS,
                    message=f"Download request failed with {response.status_code} {response.reason or ''}".rstrip(),
                    detail={"url": url, "status_code": response.status_code, "headers": dict(response.headers)},
                )
            finally:
                response.close()

    def _write_body(self, response, url: str, dest_path: Path) -> Result:
        written = 0
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with open(dest_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except requests.RequestException as e:
            return DownloadFailure(
                kind=FailureKind.TRANSPORT,
                message=f"Download of {url} was interrupted after {written} bytes: {e}",
                detail={"url": url, "bytes_written": written, "error": repr(e)},
            )
        except OSError as e:
            return DownloadFailure(
                kind=FailureKind.TRANSPORT,
                message=f"Could not write download of {url} to {dest_path}: {e}",
                detail={"url": url, "path": str(dest_path), "error": repr(e)},
            )

        logger.debug(f"Download response was 200, wrote {written} bytes to {dest_path}")
        return Ok(dest_path)
