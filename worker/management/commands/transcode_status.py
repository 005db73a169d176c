import json

from django.core.management.base import BaseCommand, CommandError

from worker.queues import AmqpJobQueue, BrokerError


class Command(BaseCommand):
    help = 'Show the message and consumer counts of the input queue'

    def handle(self, *args, **options):
        queue = AmqpJobQueue()
        try:
            status = queue.status()
        except BrokerError as e:
            raise CommandError(str(e)) from e
        finally:
            queue.close()

        self.stdout.write(json.dumps(status.to_dict(), indent=2))
