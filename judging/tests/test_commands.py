from __future__ import annotations

import io
import os
import tempfile
from pathlib import Path

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "surf_platform.settings")

import django

django.setup()

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from judging import models


class ManagementCommandTests(TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.csv_path = Path(tmp.name) / "open.csv"
        rows = "".join(f"{seed},Surfer {seed},Open\n" for seed in range(1, 9))
        self.csv_path.write_text("seed,name,category\n" + rows + "0,Nobody,Open\n", encoding="utf-8")

    def test_import_creates_event_on_request(self):
        out, err = io.StringIO(), io.StringIO()
        call_command(
            "import_participants",
            "--event-slug",
            "anglet",
            "--name",
            "Anglet Surf Trophy",
            "--path",
            str(self.csv_path),
            stdout=out,
            stderr=err,
        )

        self.assertIn("8 created", out.getvalue())
        self.assertIn("Row 10: invalid seed '0'", err.getvalue())
        event = models.Event.objects.get(slug="anglet")
        self.assertEqual(event.participants.count(), 8)

    def test_import_errors(self):
        with self.assertRaises(CommandError):
            call_command("import_participants", "--event-slug", "missing", "--path", str(self.csv_path))
        models.Event.objects.create(name="Anglet", slug="anglet")
        with self.assertRaises(CommandError):
            call_command("import_participants", "--event-slug", "anglet", "--path", "/nonexistent/open.csv")

    def test_generate_heats(self):
        call_command(
            "import_participants",
            "--event-slug",
            "anglet",
            "--name",
            "Anglet",
            "--path",
            str(self.csv_path),
            stdout=io.StringIO(),
            stderr=io.StringIO(),
        )
        out = io.StringIO()
        call_command(
            "generate_heats",
            "--event-slug",
            "anglet",
            "--category",
            "Open",
            "--variant",
            "V2",
            "--heat-size",
            "2",
            stdout=out,
        )

        output = out.getvalue()
        self.assertIn("Round 1: 4 heat(s)", output)
        self.assertIn("Finale: 1 heat(s)", output)
        self.assertIn("Heats generated for Open.", output)
        self.assertEqual(models.Heat.objects.filter(bracket__category="Open").count(), 4 + 2 + 1)

        with self.assertRaises(CommandError):
            call_command("generate_heats", "--event-slug", "anglet", "--category", "Open", stdout=io.StringIO())
        out = io.StringIO()
        call_command(
            "generate_heats", "--event-slug", "anglet", "--category", "Open", "--overwrite", verbosity=2, stdout=out
        )
        self.assertEqual(models.Bracket.objects.get().variant, "V1")
        self.assertIn("R1-H1: ROUGE Surfer 1, BLANC Surfer 4", out.getvalue())
        self.assertIn("ROUGE QUALIFIÉ R1-H1 (P1)", out.getvalue())

    def test_generate_heats_for_unknown_category(self):
        models.Event.objects.create(name="Anglet", slug="anglet")
        with self.assertRaises(CommandError):
            call_command("generate_heats", "--event-slug", "anglet", "--category", "Open")
        with self.assertRaises(CommandError):
            call_command("generate_heats", "--event-slug", "nowhere", "--category", "Open")
