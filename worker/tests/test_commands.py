"""
Tests for the transcode_worker, transcode_status and transcode_check management commands
"""

import json
from io import StringIO
from unittest.mock import MagicMock, patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase

from worker.queues import BrokerError, QueueStatus


class TranscodeCheckCommandTest(SimpleTestCase):
    @patch("worker.transcode.shutil.which", return_value="/usr/bin/HandBrakeCLI")
    def test_found(self, mock_which):
        stdout = StringIO()
        call_command("transcode_check", stdout=stdout)

        self.assertIn("/usr/bin/HandBrakeCLI", stdout.getvalue())

    @patch("worker.transcode.shutil.which", return_value=None)
    def test_missing(self, mock_which):
        with self.assertRaises(CommandError) as ctx:
            call_command("transcode_check")

        self.assertIn("not in the current path", str(ctx.exception))


class TranscodeStatusCommandTest(SimpleTestCase):
    @patch("worker.management.commands.transcode_status.AmqpJobQueue")
    def test_status(self, mock_queue_class):
        mock_queue_class.return_value.status.return_value = QueueStatus("encode_input", 3, 1)
        stdout = StringIO()

        call_command("transcode_status", stdout=stdout)

        self.assertEqual(json.loads(stdout.getvalue())["message_count"], 3)
        mock_queue_class.return_value.close.assert_called_once()

    @patch("worker.management.commands.transcode_status.AmqpJobQueue")
    def test_broker_unavailable(self, mock_queue_class):
        mock_queue_class.return_value.status.side_effect = BrokerError("down")

        with self.assertRaises(CommandError):
            call_command("transcode_status")


class TranscodeWorkerCommandTest(SimpleTestCase):
    def make_consumer(self, *results):
        consumer = MagicMock()
        consumer.do_job.side_effect = list(results)
        return consumer

    @patch("worker.management.commands.transcode_worker.TranscodeConsumer.from_settings")
    def test_once(self, mock_from_settings):
        consumer = self.make_consumer(True, True)
        mock_from_settings.return_value = consumer
        stdout = StringIO()

        call_command("transcode_worker", "--once", stdout=stdout)

        consumer.do_job.assert_called_once()
        self.assertIn("Handled 1 job(s)", stdout.getvalue())

    @patch("worker.management.commands.transcode_worker.TranscodeConsumer.from_settings")
    def test_drains_until_empty(self, mock_from_settings):
        consumer = self.make_consumer(True, True, True, False)
        mock_from_settings.return_value = consumer
        stdout = StringIO()

        call_command("transcode_worker", stdout=stdout)

        self.assertIn("Handled 3 job(s)", stdout.getvalue())
        consumer.queue.close.assert_called_once()

    @patch("worker.management.commands.transcode_worker.TranscodeConsumer.from_settings")
    def test_max_jobs(self, mock_from_settings):
        consumer = self.make_consumer(True, True, True, True)
        mock_from_settings.return_value = consumer
        stdout = StringIO()

        call_command("transcode_worker", "--max-jobs", "2", stdout=stdout)

        self.assertEqual(consumer.do_job.call_count, 2)
        self.assertIn("Handled 2 job(s)", stdout.getvalue())

    @patch("worker.management.commands.transcode_worker.time.sleep")
    @patch("worker.management.commands.transcode_worker.TranscodeConsumer.from_settings")
    def test_poll_interval_waits_on_empty_queue(self, mock_from_settings, mock_sleep):
        consumer = self.make_consumer(False, True, False)
        mock_from_settings.return_value = consumer

        call_command("transcode_worker", "--max-jobs", "1", "--poll-interval", "5", stdout=StringIO())

        mock_sleep.assert_called_once_with(5.0)
        self.assertEqual(consumer.do_job.call_count, 2)
