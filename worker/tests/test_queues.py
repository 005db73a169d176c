"""
Tests for worker/queues.py against kombu's in-memory transport.
"""

import json
import uuid
from unittest.mock import patch

from django.test import SimpleTestCase
from kombu import Connection, Queue

from worker.queues import QUEUE_EMPTY, AmqpJobQueue, BrokerError, QueueStatus


class AmqpJobQueueTest(SimpleTestCase):
    def setUp(self):
        self.connection = Connection("memory://")
        self.addCleanup(self.connection.release)
        # the memory transport is process-global; keep queue names unique per test
        suffix = uuid.uuid4().hex[:8]
        self.queue = AmqpJobQueue(
            self.connection,
            input_queue=f"encode_input_{suffix}",
            output_queue=f"encode_output_{suffix}",
            error_queue=f"encode_error_{suffix}",
            durable=False,
        )

    def put_input(self, body: str):
        producer = self.connection.Producer()
        producer.publish(
            body,
            content_type="application/json",
            content_encoding="utf-8",
            exchange="",
            routing_key=self.queue.input_queue,
            declare=[Queue(self.queue.input_queue, routing_key=self.queue.input_queue, durable=False)],
        )

    def read(self, name):
        queue = Queue(name, routing_key=name, durable=False)(self.connection.default_channel)
        return queue.get(no_ack=True)

    def test_dequeue_empty(self):
        self.assertEqual(self.queue.dequeue(), QUEUE_EMPTY)

    def test_dequeue_returns_raw_body(self):
        self.put_input(json.dumps({"type": "rss"}))

        body = self.queue.dequeue()

        if isinstance(body, bytes):
            body = body.decode("utf-8")
        self.assertEqual(json.loads(body), {"type": "rss"})
        self.assertEqual(self.queue.dequeue(), QUEUE_EMPTY)

    def test_publish_success_and_failure(self):
        self.queue.publish_success({"input_job": {"type": "rss"}, "gstore_bucket_name": "b"})
        self.queue.publish_failure({"input_job": {"type": "rss"}, "exception": []})

        self.assertEqual(self.read(self.queue.output_queue).payload,
                         {"input_job": {"type": "rss"}, "gstore_bucket_name": "b"})
        self.assertEqual(self.read(self.queue.error_queue).payload, {"input_job": {"type": "rss"}, "exception": []})

    def test_status(self):
        self.put_input("{}")
        self.put_input("{}")

        status = self.queue.status()

        self.assertEqual(status, QueueStatus(queue=self.queue.input_queue, message_count=2, consumer_count=0))
        self.assertEqual(status.to_dict()["message_count"], 2)

    def test_broker_errors_are_wrapped(self):
        with patch.object(AmqpJobQueue, "_queue", side_effect=OSError("connection refused")):
            with self.assertRaises(BrokerError):
                self.queue.dequeue()
            with self.assertRaises(BrokerError):
                self.queue.publish_failure({"input_job": {}, "exception": []})
            with self.assertRaises(BrokerError):
                self.queue.status()

    def test_queue_names_default_to_settings(self):
        with self.settings(TRANSCODE_INPUT_QUEUE="in", TRANSCODE_OUTPUT_QUEUE="out", TRANSCODE_ERROR_QUEUE="err"):
            queue = AmqpJobQueue(self.connection)
        self.assertEqual((queue.input_queue, queue.output_queue, queue.error_queue), ("in", "out", "err"))
