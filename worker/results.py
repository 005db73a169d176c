"""
Result types returned by the fetch, transcode and publish steps.

Each step returns either ``Ok`` or one ``Failure`` subclass instead of raising,
so the consumer can aggregate per-preset failures and decide which outcome
queue gets the job report.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class FailureKind(str, Enum):
    # DownloadFailure
    INVALID_URI = "InvalidURI"
    TOO_MANY_REDIRECTS = "TooManyRedirects"
    BAD_STATUS = "BadStatus"
    TRANSPORT = "Transport"
    # TranscodeFailure
    TOOL_NOT_FOUND = "ToolNotFound"
    TOOL_EXITED_NON_ZERO = "ToolExitedNonZero"
    TIMED_OUT = "TimedOut"
    # TranscodeFailure and UploadFailure
    SOURCE_MISSING = "SourceMissing"
    # UploadFailure
    STORE_ERROR = "StoreError"
    # JobRejected
    MALFORMED_JOB = "MalformedJob"
    UNEXPECTED = "Unexpected"


@dataclass(frozen=True)
class Ok:
    value: Any = None


@dataclass(frozen=True)
class Failure:
    """Base failure: a kind, a human readable message and diagnostic detail."""

    kind: FailureKind
    message: str
    preset: Optional[str] = None
    detail: dict = field(default_factory=dict)

    category = "Failure"
    allowed_kinds = frozenset()

    def __post_init__(self):
        if self.allowed_kinds and self.kind not in self.allowed_kinds:
            raise ValueError(f"{type(self).__name__} cannot carry kind {self.kind.value}")

    def for_preset(self, preset: str) -> "Failure":
        """Return a copy of this failure attributed to ``preset``."""
        return type(self)(kind=self.kind, message=self.message, preset=preset, detail=dict(self.detail))

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "kind": self.kind.value,
            "message": self.message,
            "preset": self.preset,
            "detail": self.detail,
        }

    def __str__(self):
        prefix = f"[{self.preset}] " if self.preset else ""
        return f"{prefix}{self.category}({self.kind.value}): {self.message}"


@dataclass(frozen=True)
class DownloadFailure(Failure):
    category = "DownloadFailure"
    allowed_kinds = frozenset({
        FailureKind.INVALID_URI,
        FailureKind.TOO_MANY_REDIRECTS,
        FailureKind.BAD_STATUS,
        FailureKind.TRANSPORT,
    })


@dataclass(frozen=True)
class TranscodeFailure(Failure):
    category = "TranscodeFailure"
    allowed_kinds = frozenset({
        FailureKind.TOOL_NOT_FOUND,
        FailureKind.SOURCE_MISSING,
        FailureKind.TOOL_EXITED_NON_ZERO,
        FailureKind.TIMED_OUT,
    })


@dataclass(frozen=True)
class UploadFailure(Failure):
    category = "UploadFailure"
    allowed_kinds = frozenset({
        FailureKind.SOURCE_MISSING,
        FailureKind.STORE_ERROR,
    })


@dataclass(frozen=True)
class JobRejected(Failure):
    """The job could not be processed at all (bad payload, unexpected error)."""

    category = "JobRejected"
    allowed_kinds = frozenset({
        FailureKind.MALFORMED_JOB,
        FailureKind.UNEXPECTED,
    })


Result = Union[Ok, Failure]


def is_failure(result: Result) -> bool:
    return isinstance(result, Failure)
