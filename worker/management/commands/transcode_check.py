from django.core.management.base import BaseCommand, CommandError

from worker.transcode import Transcoder


class Command(BaseCommand):
    help = 'Check that the transcoder executable is on the PATH'

    def handle(self, *args, **options):
        transcoder = Transcoder()
        location = transcoder.locate()
        if location is None:
            raise CommandError(f"{transcoder.executable} is not in the current path, maybe it's not installed?")
        self.stdout.write(self.style.SUCCESS(f'{transcoder.executable}: {location}'))
