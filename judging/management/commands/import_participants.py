from __future__ import annotations

import pathlib

from django.core.management.base import BaseCommand, CommandError

from judging import models, services


class Command(BaseCommand):
    help = "Import ranked participants of an event from a CSV file"

    def add_arguments(self, parser):
        parser.add_argument("--event-slug", required=True, help="Slug of the event")
        parser.add_argument("--path", required=True, help="Path to the CSV file")
        parser.add_argument("--name", help="Create the event with this name when it does not exist")

    def handle(self, *args, **options):
        slug = options["event_slug"]
        csv_path = pathlib.Path(options["path"])
        event = models.Event.objects.filter(slug=slug).first()
        if event is None:
            if not options.get("name"):
                raise CommandError(f"Event with slug '{slug}' not found")
            event = models.Event.objects.create(slug=slug, name=options["name"])
        if not csv_path.exists():
            raise CommandError(f"CSV file '{csv_path}' does not exist")

        with csv_path.open("rb") as handle:
            summary = services.import_participants_csv(event, handle)

        for error in summary["errors"]:
            self.stderr.write(error)
        self.stdout.write(
            self.style.SUCCESS(
                f"Participants imported: {summary['created']} created, {summary['updated']} updated."
            )
        )
