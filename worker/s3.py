import logging
from pathlib import Path
from typing import Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from .results import FailureKind, Ok, Result, UploadFailure
from .utils import guess_content_type

logger = logging.getLogger(__name__)


def get_s3_client():
    """
    SDK client for server-side uploads.
    """
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000 for MinIO
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def rendition_key(media_title: str, preset: str, extension: Optional[str] = None) -> str:
    """<title>/<preset>.<ext>"""
    ext = (extension or settings.TRANSCODE_OUTPUT_EXTENSION).lstrip(".")
    return f"{media_title}/{preset}.{ext}"


class StorePublisher:
    """Uploads local renditions into the configured bucket."""

    def __init__(self, bucket: Optional[str] = None, client=None):
        self.bucket = bucket or settings.S3_BUCKET
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def publish(self, dest_key: str, source_path: Path) -> Result:
        source_path = Path(source_path)
        if not source_path.exists():
            return UploadFailure(
                kind=FailureKind.SOURCE_MISSING,
                message=f"The source file {source_path} does not exist",
                detail={"source": str(source_path), "key": dest_key},
            )

        extra = {}
        content_type = guess_content_type(dest_key)
        if content_type:
            extra["ContentType"] = content_type

        try:
            self.client.upload_file(str(source_path), self.bucket, dest_key, ExtraArgs=extra or None)
        except (ClientError, BotoCoreError, S3UploadFailedError, OSError) as e:
            return UploadFailure(
                kind=FailureKind.STORE_ERROR,
                message=f"Upload to s3://{self.bucket}/{dest_key} failed with: {e!r}",
                detail={"bucket": self.bucket, "key": dest_key, "error": repr(e)},
            )

        logger.info(f"Uploaded {source_path} to s3://{self.bucket}/{dest_key}")
        return Ok(dest_key)
