"""Collaborator contracts for TranscodeConsumer.

The consumer only depends on these protocols, so the broker, HTTP, transcoder
and object store implementations can be swapped for in-memory fakes in tests.
"""

from pathlib import Path
from typing import Any, Protocol

from .results import Result


class IFetcher(Protocol):
    def fetch(self, source_url: str, dest_path: Path) -> Result:
        """Download source_url into dest_path. Ok(dest_path) or DownloadFailure."""
        ...


class ITranscoder(Protocol):
    def transcode(self, source_path: Path, dest_path: Path, preset: str) -> Result:
        """Produce one rendition. Ok(dest_path) or TranscodeFailure."""
        ...


class IPublisher(Protocol):
    bucket: str

    def publish(self, dest_key: str, source_path: Path) -> Result:
        """Store source_path under dest_key. Ok(dest_key) or UploadFailure."""
        ...


class IJobQueue(Protocol):
    def dequeue(self) -> Any:
        """Next raw input payload, or QUEUE_EMPTY when nothing is waiting."""
        ...

    def publish_success(self, message: dict) -> None:
        ...

    def publish_failure(self, message: dict) -> None:
        ...

    def status(self) -> Any:
        """QueueStatus for the input queue."""
        ...
