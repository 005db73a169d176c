import logging
from typing import Optional

from celery import shared_task

from .consumer import TranscodeConsumer

logger = logging.getLogger(__name__)


def drain(consumer: TranscodeConsumer, max_jobs: Optional[int] = None) -> int:
    """Run do_job until the input queue is empty or max_jobs jobs were handled."""
    handled = 0
    while max_jobs is None or handled < max_jobs:
        if not consumer.do_job():
            break
        handled += 1
    return handled


@shared_task(bind=True)
def process_next_job(self) -> bool:
    """Pop and process one job. True if a job was present."""
    consumer = TranscodeConsumer.from_settings()
    try:
        return consumer.do_job()
    finally:
        consumer.queue.close()


@shared_task(bind=True)
def drain_input_queue(self, max_jobs: Optional[int] = None) -> int:
    """Process jobs until the input queue is empty; returns how many were handled."""
    consumer = TranscodeConsumer.from_settings()
    try:
        handled = drain(consumer, max_jobs)
    finally:
        consumer.queue.close()
    logger.info(f"Drained {handled} job(s) from the input queue")
    return handled
