"""
Management command that runs the transcode consumer against the input queue.

Processes jobs until the queue is empty, or keeps polling when
--poll-interval is given.
"""
import time

from django.core.management.base import BaseCommand

from worker.consumer import TranscodeConsumer
from worker.tasks import drain


class Command(BaseCommand):
    help = 'Process transcoding jobs from the input queue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--max-jobs',
            type=int,
            default=None,
            help='Stop after this many jobs'
        )
        parser.add_argument(
            '--once',
            action='store_true',
            help='Process at most one job'
        )
        parser.add_argument(
            '--poll-interval',
            type=float,
            default=0,
            help='Seconds to wait before polling an empty queue again (default: 0, exit when empty)'
        )

    def handle(self, *args, **options):
        max_jobs = 1 if options['once'] else options['max_jobs']
        poll_interval = 0 if options['once'] else options['poll_interval']

        consumer = TranscodeConsumer.from_settings()
        handled = 0
        try:
            while max_jobs is None or handled < max_jobs:
                remaining = None if max_jobs is None else max_jobs - handled
                n = drain(consumer, remaining)
                handled += n
                if poll_interval <= 0:
                    break
                if n == 0:
                    time.sleep(poll_interval)
        finally:
            consumer.queue.close()

        self.stdout.write(self.style.SUCCESS(f'Handled {handled} job(s)'))
