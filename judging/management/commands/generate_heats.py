from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from judging import models, services
from judging.bracket import FORMATS, VARIANTS
from judging.colors import color_label
from judging.seeding import InvalidConfiguration


class Command(BaseCommand):
    help = "Generate and store the heats of an event category"

    def add_arguments(self, parser):
        parser.add_argument("--event-slug", required=True, help="Slug of the event")
        parser.add_argument("--category", required=True, help="Category to seed")
        parser.add_argument("--format", choices=FORMATS, default=FORMATS[0])
        parser.add_argument("--variant", choices=VARIANTS, default=VARIANTS[0])
        parser.add_argument("--heat-size", default="auto", help="Surfers per heat (2-4) or 'auto'")
        parser.add_argument("--round2-heat-size", type=int)
        parser.add_argument("--round2-advance", type=int)
        parser.add_argument("--overwrite", action="store_true", help="Replace existing heats")

    def handle(self, *args, **options):
        slug = options["event_slug"]
        category = options["category"]
        event = models.Event.objects.filter(slug=slug).first()
        if event is None:
            raise CommandError(f"Event with slug '{slug}' not found")
        if not event.participants.filter(category=category).exists():
            raise CommandError(f"No participants in category '{category}'")

        try:
            bracket = services.generate_bracket(
                event,
                category,
                format=options["format"],
                variant=options["variant"],
                preferred_heat_size=options["heat_size"],
                round2_heat_size=options.get("round2_heat_size"),
                round2_advance=options.get("round2_advance"),
                overwrite=options["overwrite"],
            )
        except (services.BracketExists, InvalidConfiguration) as exc:
            raise CommandError(str(exc)) from exc

        spec = bracket.as_spec()
        for round_spec in spec.all_rounds():
            self.stdout.write(f"{round_spec.name}: {len(round_spec.heats)} heat(s)")
            if options["verbosity"] >= 2:
                for heat in round_spec.heats:
                    lanes = ", ".join(f"{color_label(slot.color)} {slot.label}" for slot in heat.slots)
                    self.stdout.write(f"  {heat.round_ref}: {lanes}")
        self.stdout.write(self.style.SUCCESS(f"Heats generated for {category}."))
