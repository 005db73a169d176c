import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from .results import Failure
from .serializers import TranscodeJobSerializer


class MalformedJobError(ValueError):
    """The payload claims to be a transcoding job but cannot be processed."""


def decode_payload(raw) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedJobError(f"Job payload is not valid UTF-8: {e}") from e
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedJobError(f"Job payload is not valid JSON: {e}") from e
    return raw


def _media_url(payload) -> Optional[str]:
    obj = payload.get("object") if isinstance(payload, dict) else None
    if not isinstance(obj, dict):
        return None
    return obj.get("media_content_url") or None


@dataclass(frozen=True)
class JobDescriptor:
    job_type: str
    media_title: str
    source_url: str
    presets: Tuple[str, ...]
    # decoded message, echoed back verbatim in reports
    raw: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload, job_type: str) -> Optional["JobDescriptor"]:
        """
        Build a descriptor from a decoded queue message.

        Returns None when the message is not a transcoding job (wrong type or no
        media URL); such messages are skipped without a report. Raises
        MalformedJobError when it is one but is missing required fields.
        """
        if not isinstance(payload, dict) or payload.get("type") != job_type or not _media_url(payload):
            return None

        ser = TranscodeJobSerializer(data=payload)
        if not ser.is_valid():
            raise MalformedJobError(f"Invalid transcoding job: {json.dumps(ser.errors, sort_keys=True)}")
        data = ser.validated_data
        return cls(
            job_type=data["type"],
            media_title=data["object"]["media_title"],
            source_url=data["object"]["media_content_url"],
            presets=tuple(data["handbrake_presets"]),
            raw=payload,
        )


@dataclass
class RenditionOutcome:
    preset: str
    key: Optional[str] = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class JobReport:
    """Terminal report for one job: success with the bucket name, or failure with every cause."""

    input_job: Any
    bucket: Optional[str] = None
    failures: List[Failure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def to_message(self) -> dict:
        if self.succeeded:
            return {"input_job": self.input_job, "gstore_bucket_name": self.bucket}
        return {"input_job": self.input_job, "exception": [f.to_dict() for f in self.failures]}
