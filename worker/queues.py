import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from kombu import Connection, Queue
from kombu.exceptions import KombuError

logger = logging.getLogger(__name__)

# Returned by dequeue() when the input queue has nothing waiting.
QUEUE_EMPTY = "queue_empty"


class BrokerError(Exception):
    """The broker could not be reached or rejected an operation."""


@dataclass(frozen=True)
class QueueStatus:
    queue: str
    message_count: int
    consumer_count: int

    def to_dict(self) -> dict:
        return {
            "queue": self.queue,
            "message_count": self.message_count,
            "consumer_count": self.consumer_count,
        }


class AmqpJobQueue:
    """
    Input, output and error queues on one AMQP connection.

    Messages are taken with no_ack=True (acknowledged on receipt), so each job
    is delivered to at most one worker. Reports are published on the default
    exchange with the queue name as routing key.
    """

    def __init__(self, connection: Optional[Connection] = None, *,
                 input_queue: Optional[str] = None,
                 output_queue: Optional[str] = None,
                 error_queue: Optional[str] = None,
                 durable: Optional[bool] = None):
        if connection is None:
            from transcode_pipeline.celery import celery_app
            connection = celery_app.connection_for_write()
        self.connection = connection
        self.input_queue = input_queue or settings.TRANSCODE_INPUT_QUEUE
        self.output_queue = output_queue or settings.TRANSCODE_OUTPUT_QUEUE
        self.error_queue = error_queue or settings.TRANSCODE_ERROR_QUEUE
        self.durable = settings.TRANSCODE_QUEUE_DURABLE if durable is None else durable

    @property
    def _errors(self) -> tuple:
        return (KombuError, OSError) + tuple(self.connection.connection_errors) + tuple(self.connection.channel_errors)

    def _queue(self, name: str) -> Queue:
        return Queue(name, routing_key=name, durable=self.durable, auto_delete=False)

    def dequeue(self):
        try:
            queue = self._queue(self.input_queue)(self.connection.default_channel)
            queue.declare()
            message = queue.get(no_ack=True)
        except self._errors as e:
            raise BrokerError(f"Could not read from queue {self.input_queue}: {e!r}") from e
        if message is None:
            return QUEUE_EMPTY
        return message.body

    def _publish(self, queue_name: str, message: dict) -> None:
        try:
            producer = self.connection.Producer()
            producer.publish(
                message,
                exchange="",
                routing_key=queue_name,
                serializer="json",
                declare=[self._queue(queue_name)],
                retry=True,
                retry_policy={"max_retries": 3},
            )
        except self._errors as e:
            raise BrokerError(f"Could not publish to queue {queue_name}: {e!r}") from e

    def publish_success(self, message: dict) -> None:
        self._publish(self.output_queue, message)

    def publish_failure(self, message: dict) -> None:
        self._publish(self.error_queue, message)

    def status(self) -> QueueStatus:
        try:
            queue = self._queue(self.input_queue)(self.connection.default_channel)
            name, message_count, consumer_count = queue.queue_declare(passive=True)
        except self._errors as e:
            raise BrokerError(f"Could not read status of queue {self.input_queue}: {e!r}") from e
        return QueueStatus(queue=name, message_count=message_count, consumer_count=consumer_count)

    def close(self) -> None:
        self.connection.release()
