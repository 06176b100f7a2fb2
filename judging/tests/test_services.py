from __future__ import annotations

import io
import os
from decimal import Decimal
from unittest import mock

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "surf_platform.settings")

import django

django.setup()

from django.db.models import F
from django.test import TestCase, override_settings

from judging import bracket as bracket_module
from judging import models, services


def make_event(slug="lacanau", count=12, category="Open"):
    event = models.Event.objects.create(name="Lacanau Pro", slug=slug)
    for seed in range(1, count + 1):
        models.Participant.objects.create(event=event, category=category, seed=seed, name=f"Surfer {seed}")
    return event


def score_heat(heat, marks, judges=("J1", "J2", "J3"), wave=1):
    for colour, value in marks.items():
        for judge in judges:
            services.submit_score(heat, surfer=colour, wave_number=wave, judge_id=judge, score=value)


class ParticipantImportTests(TestCase):
    def setUp(self):
        self.event = models.Event.objects.create(name="Hossegor Open", slug="hossegor")

    def test_import_reports_row_errors(self):
        csv_content = (
            "seed,name,category,country\n"
            "1,Kai,Open,FRA\n"
            "2,Lea,Open,ESP\n"
            "2,Tom,Open,\n"
            "x,Bad,Open,\n"
            "3,,Open,\n"
        )
        result = services.import_participants_csv(self.event, csv_content)

        self.assertEqual(result["created"], 2)
        self.assertEqual(result["updated"], 0)
        self.assertEqual(
            result["errors"],
            [
                "Row 4: duplicate seed 2 for category Open",
                "Row 5: invalid seed 'x'",
                "Row 6: name is required",
            ],
        )
        kai = models.Participant.objects.get(event=self.event, seed=1)
        self.assertEqual(kai.country, "FRA")
        self.assertTrue(models.AuditLog.objects.filter(action="participants.import").exists())

    def test_french_headers_and_bytes_upload(self):
        csv_content = "Classement,Nom,Division,Pays\n1,Léa,Junior,FRA\n"
        upload = io.BytesIO(csv_content.encode("utf-8-sig"))

        result = services.import_participants_csv(self.event, upload)

        self.assertEqual(result["created"], 1)
        participant = models.Participant.objects.get(event=self.event)
        self.assertEqual(participant.name, "Léa")
        self.assertEqual(participant.category, "Junior")

    def test_reimport_updates_existing_seed(self):
        services.import_participants_csv(self.event, "seed,name,category\n1,Kai,Open\n")
        result = services.import_participants_csv(self.event, "seed,name,category\n1,Kai Lenny,Open\n")

        self.assertEqual(result["updated"], 1)
        self.assertEqual(models.Participant.objects.get(event=self.event, seed=1).name, "Kai Lenny")

    def test_parse_sorts_by_category_then_seed(self):
        rows, errors = services.parse_participants_csv(
            "seed,name,category\n3,C,Open\n1,A,Open\n2,B,Junior\n"
        )
        self.assertEqual(errors, [])
        self.assertEqual([(row["category"], row["seed"]) for row in rows], [("Junior", 2), ("Open", 1), ("Open", 3)])


class BracketGenerationTests(TestCase):
    def setUp(self):
        self.event = make_event()

    def test_generate_persists_heats_and_entries(self):
        bracket = services.generate_bracket(self.event, "Open")

        self.assertEqual(bracket.heats.count(), 6)
        self.assertEqual(bracket.version, 1)
        heat = bracket.heats.get(round_ref="R1-H1")
        entries = list(heat.entries.order_by("position"))
        self.assertEqual([entry.color for entry in entries], ["RED", "WHITE", "YELLOW", "BLUE"])
        self.assertEqual([entry.participant.seed for entry in entries], [1, 6, 7, 12])
        self.assertEqual(heat.judge_count, 3)
        self.assertEqual(heat.max_waves, 12)

        later = bracket.heats.get(round_ref="R2-H1")
        self.assertEqual(later.round_name, "Round 2")
        self.assertEqual(
            list(later.entries.values_list("placeholder", flat=True)),
            ["R1-H1-P1", "R1-H2-P2", "R1-H3-P1"],
        )
        self.assertFalse(later.entries.filter(participant__isnull=False).exists())
        self.assertEqual(bracket.heats.get(round_ref="R3-H1").round_name, "Finale")
        self.assertTrue(models.AuditLog.objects.filter(action="bracket.generate").exists())

    def test_second_generation_needs_overwrite(self):
        services.generate_bracket(self.event, "Open")
        with self.assertRaises(services.BracketExists):
            services.generate_bracket(self.event, "Open")

        bracket = services.generate_bracket(self.event, "Open", variant="V2", overwrite=True)
        self.assertEqual(bracket.variant, "V2")
        self.assertEqual(models.Bracket.objects.filter(event=self.event).count(), 1)
        self.assertEqual(bracket.heats.count(), 3 + 3 + 2 + 1)

    def test_repechage_heats_are_flagged(self):
        bracket = services.generate_bracket(self.event, "Open", format="repechage")
        repechage = bracket.heats.filter(is_repechage=True)
        self.assertTrue(repechage.exists())
        self.assertTrue(all(heat.round_ref.startswith("RP") for heat in repechage))


class ScoringTests(TestCase):
    def setUp(self):
        self.event = make_event()
        self.bracket = services.generate_bracket(self.event, "Open")
        self.heat = self.bracket.heats.get(round_ref="R1-H1")

    def test_submit_score_upserts_and_opens_heat(self):
        services.submit_score(self.heat, surfer="Rouge", wave_number=1, judge_id="j1", score="6,5")
        mark = services.submit_score(self.heat, surfer="RED", wave_number=1, judge_id="J1", score=7.25)

        self.assertEqual(models.Score.objects.filter(heat=self.heat).count(), 1)
        self.assertEqual(mark.score, Decimal("7.25"))
        self.heat.refresh_from_db()
        self.assertEqual(self.heat.status, models.Heat.Status.OPEN)

    def test_rejected_marks(self):
        bad_inputs = [
            {"surfer": "RED", "wave_number": 1, "judge_id": "J1", "score": "11"},
            {"surfer": "RED", "wave_number": 1, "judge_id": "J1", "score": "abc"},
            {"surfer": "RED", "wave_number": 13, "judge_id": "J1", "score": "5"},
            {"surfer": "GREEN", "wave_number": 1, "judge_id": "J1", "score": "5"},
            {"surfer": "RED", "wave_number": 1, "judge_id": " ", "score": "5"},
        ]
        for kwargs in bad_inputs:
            with self.subTest(**kwargs):
                with self.assertRaises(services.ScoreRejected):
                    services.submit_score(self.heat, **kwargs)

        self.heat.status = models.Heat.Status.CLOSED
        self.heat.save()
        with self.assertRaises(services.ScoreRejected):
            services.submit_score(self.heat, surfer="RED", wave_number=1, judge_id="J1", score="5")

    def test_standings_include_interference(self):
        score_heat(self.heat, {"RED": "8", "WHITE": "6"}, wave=1)
        score_heat(self.heat, {"RED": "7", "WHITE": "6"}, wave=2)
        services.record_interference(self.heat, surfer="RED", wave_number=1, judge_id="J1", call_type="int2")
        services.record_interference(self.heat, surfer="RED", wave_number=1, judge_id="J2", call_type="INT2")

        standings = {stats.surfer: stats for stats in services.compute_heat_standings(self.heat)}

        self.assertEqual(standings["RED"].best_two, Decimal("8.00"))
        self.assertEqual(standings["RED"].interference_type, "INT2")
        self.assertEqual(standings["WHITE"].best_two, Decimal("12.00"))
        self.assertEqual(standings["WHITE"].rank, 1)
        self.assertEqual(standings["BLUE"].best_two, Decimal("0.00"))

    def test_unknown_interference_type(self):
        with self.assertRaises(services.ScoreRejected):
            services.record_interference(self.heat, surfer="RED", wave_number=1, judge_id="J1", call_type="INT3")


class HeatClosingTests(TestCase):
    def setUp(self):
        self.event = make_event()
        self.bracket = services.generate_bracket(self.event, "Open")
        self.heat = self.bracket.heats.get(round_ref="R1-H1")
        score_heat(self.heat, {"WHITE": "9", "RED": "8", "YELLOW": "5", "BLUE": "4"})

    def test_close_heat_resolves_qualifiers(self):
        standings = services.close_heat(self.heat)

        self.assertEqual([stats.surfer for stats in standings], ["WHITE", "RED", "YELLOW", "BLUE"])
        self.heat.refresh_from_db()
        self.assertTrue(self.heat.is_closed)
        self.assertIsNotNone(self.heat.closed_at)

        first = self.bracket.heats.get(round_ref="R2-H1").entries.get(position=1)
        self.assertEqual(first.participant.seed, 6)
        self.assertEqual(first.seed, 6)
        self.assertEqual(first.placeholder, "")
        self.assertEqual(first.color, "RED")
        second = self.bracket.heats.get(round_ref="R2-H2").entries.get(position=1)
        self.assertEqual(second.participant.seed, 1)
        pending = self.bracket.heats.get(round_ref="R2-H1").entries.get(position=2)
        self.assertEqual(pending.placeholder, "R1-H2-P2")

        self.bracket.refresh_from_db()
        self.assertEqual(self.bracket.version, 2)
        self.assertEqual(self.bracket.as_spec().heat("R2-H1").slots[0].source, "R1-H1-P1")

    def test_resolving_again_keeps_the_version(self):
        services.close_heat(self.heat)
        bracket = services.resolve_bracket(self.bracket)
        self.assertEqual(bracket.version, 2)

    def test_closed_heat_rejects_scores(self):
        services.close_heat(self.heat)
        with self.assertRaises(services.ScoreRejected):
            services.submit_score(self.heat, surfer="RED", wave_number=2, judge_id="J1", score="9")


@override_settings(JUDGING_RESOLVE_RETRIES=3)
class ConcurrentResolutionTests(TestCase):
    def setUp(self):
        self.event = make_event()
        self.bracket = services.generate_bracket(self.event, "Open")
        heat = self.bracket.heats.get(round_ref="R1-H1")
        score_heat(heat, {"WHITE": "9", "RED": "8", "YELLOW": "5", "BLUE": "4"})
        heat.status = models.Heat.Status.CLOSED
        heat.save()

    def _racing(self, races):
        real = bracket_module.resolve_placeholders
        calls = {"count": 0}

        def resolve(spec, order):
            calls["count"] += 1
            if calls["count"] <= races:
                models.Bracket.objects.filter(pk=self.bracket.pk).update(version=F("version") + 1)
            return real(spec, order)

        return resolve

    def test_gives_up_when_the_bracket_keeps_changing(self):
        with mock.patch("judging.services.resolve_placeholders", side_effect=self._racing(races=99)):
            with self.assertRaises(services.ConcurrentUpdateError):
                services.resolve_bracket(self.bracket)

        self.bracket.refresh_from_db()
        self.assertEqual(self.bracket.version, 4)
        self.assertTrue(self.bracket.as_spec().heat("R2-H1").slots[0].is_pending)

    def test_retries_after_a_single_conflict(self):
        with mock.patch("judging.services.resolve_placeholders", side_effect=self._racing(races=1)):
            bracket = services.resolve_bracket(self.bracket)

        self.assertEqual(bracket.version, 3)
        self.assertEqual(bracket.as_spec().heat("R2-H1").slots[0].seed, 6)
        self.assertEqual(bracket.heats.get(round_ref="R2-H1").entries.get(position=1).seed, 6)
