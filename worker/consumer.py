import json
import logging
from pathlib import Path
from typing import Optional

from django.conf import settings

from .fetch import Fetcher
from .interfaces import IFetcher, IJobQueue, IPublisher, ITranscoder
from .jobs import JobDescriptor, JobReport, MalformedJobError, RenditionOutcome, decode_payload
from .queues import QUEUE_EMPTY, AmqpJobQueue, BrokerError, QueueStatus
from .results import FailureKind, JobRejected, is_failure
from .s3 import StorePublisher, rendition_key
from .transcode import Transcoder
from .utils import remove_quietly, rendition_temp_path, source_temp_path

logger = logging.getLogger(__name__)


def _is_empty_marker(payload) -> bool:
    if payload is None:
        return True
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    return isinstance(payload, str) and payload.strip() == QUEUE_EMPTY


class TranscodeConsumer:
    """
    Pops transcoding jobs off the input queue and processes them one at a time.

    For each job the source is downloaded once, then every requested preset is
    transcoded and uploaded as <title>/<preset>.<ext>. A failing preset does not
    stop the others. Exactly one report is queued per job: the success report on
    the output queue, or a failure report with every collected cause on the
    error queue.
    """

    def __init__(self, queue: IJobQueue, fetcher: IFetcher, transcoder: ITranscoder, publisher: IPublisher,
                 *, job_type: Optional[str] = None, extension: Optional[str] = None,
                 retain_failed_source: Optional[bool] = None):
        self.queue = queue
        self.fetcher = fetcher
        self.transcoder = transcoder
        self.publisher = publisher
        self.job_type = job_type or settings.TRANSCODE_JOB_TYPE
        self.extension = (extension or settings.TRANSCODE_OUTPUT_EXTENSION).lstrip(".")
        self.retain_failed_source = (
            settings.TRANSCODE_RETAIN_FAILED_SOURCE if retain_failed_source is None else retain_failed_source
        )

    @classmethod
    def from_settings(cls, *, connection=None, bucket: Optional[str] = None,
                      input_queue_name: Optional[str] = None,
                      output_queue_name: Optional[str] = None,
                      error_queue_name: Optional[str] = None) -> "TranscodeConsumer":
        """Wire the AMQP queues, HTTP fetcher, transcoder and S3 publisher from Django settings."""
        queue = AmqpJobQueue(
            connection,
            input_queue=input_queue_name,
            output_queue=output_queue_name,
            error_queue=error_queue_name,
        )
        return cls(queue, Fetcher(), Transcoder(), StorePublisher(bucket=bucket))

    # -----------------------------------------------------
    # Public API
    # -----------------------------------------------------
    def do_job(self) -> bool:
        """
        Pop a single job off the input queue and process it.

        Never raises. Returns True if a message was popped and handled (whatever
        the outcome), False if the queue was empty or could not be read.
        """
        try:
            payload = self.queue.dequeue()
        except BrokerError as e:
            logger.error(f"Could not pop a job off the input queue: {e}")
            return False
        if _is_empty_marker(payload):
            return False

        try:
            decoded = decode_payload(payload)
            job = JobDescriptor.from_payload(decoded, self.job_type)
        except MalformedJobError as e:
            self._publish_failure_report(JobReport(
                input_job=self._echo(payload),
                failures=[JobRejected(kind=FailureKind.MALFORMED_JOB, message=str(e))],
            ))
            return True

        if job is None:
            logger.info(f"Skipping message that is not a '{self.job_type}' transcoding job")
            return True

        try:
            report = self._process(job)
        except Exception as e:
            logger.exception(f"Unexpected error while processing job for {job.source_url}")
            report = JobReport(
                input_job=job.raw,
                failures=[JobRejected(kind=FailureKind.UNEXPECTED, message=f"{type(e).__name__}: {e}")],
            )

        if report.succeeded:
            self._publish_success_report(report)
        else:
            self._publish_failure_report(report)
        return True

    def get_input_queue_status(self) -> QueueStatus:
        """Message count and consumer count of the input queue."""
        return self.queue.status()

    # -----------------------------------------------------
    # Job processing
    # -----------------------------------------------------
    def _process(self, job: JobDescriptor) -> JobReport:
        source_path = source_temp_path(job.source_url, self.extension)
        succeeded = False
        try:
            logger.debug(f"Beginning download of {job.source_url} to {source_path}")
            fetched = self.fetcher.fetch(job.source_url, source_path)
            if is_failure(fetched):
                remove_quietly(source_path)
                return JobReport(input_job=job.raw, failures=[fetched])

            outcomes = [self._process_preset(job, source_path, preset) for preset in job.presets]
            failures = [o.failure for o in outcomes if not o.ok]
            if failures:
                return JobReport(input_job=job.raw, failures=failures)

            remove_quietly(source_path)
            succeeded = True
            logger.info(f"Finished {len(outcomes)} rendition(s) of '{job.media_title}'")
            return JobReport(input_job=job.raw, bucket=self.publisher.bucket)
        finally:
            if not succeeded and not self.retain_failed_source:
                remove_quietly(source_path)

    def _process_preset(self, job: JobDescriptor, source_path: Path, preset: str) -> RenditionOutcome:
        dest_path = rendition_temp_path(job.source_url, preset, self.extension)
        logger.info(f"Transcoding {job.source_url} with preset {preset}")
        try:
            result = self.transcoder.transcode(source_path, dest_path, preset)
            if is_failure(result):
                return RenditionOutcome(preset, failure=result.for_preset(preset))

            key = rendition_key(job.media_title, preset, self.extension)
            result = self.publisher.publish(key, dest_path)
            if is_failure(result):
                return RenditionOutcome(preset, failure=result.for_preset(preset))
            return RenditionOutcome(preset, key=key)
        finally:
            remove_quietly(dest_path)

    # -----------------------------------------------------
    # Reporting
    # -----------------------------------------------------
    @staticmethod
    def _echo(payload):
        """The decoded job when the payload parses, otherwise its text."""
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode("utf-8", errors="replace")
        try:
            return decode_payload(payload)
        except MalformedJobError:
            return payload

    def _publish_failure_report(self, report: JobReport) -> None:
        for failure in report.failures:
            logger.error(str(failure))
        message = report.to_message()
        try:
            self.queue.publish_failure(message)
        except BrokerError as e:
            logger.error(
                "An error occurred while attempting to add message to error queue.\n\n"
                f"---------- Message ----------\n{json.dumps(message, default=str)}\n\n"
                f"----------- Error -----------\n{e!r}"
            )

    def _publish_success_report(self, report: JobReport) -> None:
        message = report.to_message()
        try:
            self.queue.publish_success(message)
        except BrokerError as e:
            logger.error(
                "Job succeeded but the success report could not be queued; "
                f"uploaded renditions have no report.\n\nMessage: {json.dumps(message, default=str)}\n\nError: {e!r}"
            )
