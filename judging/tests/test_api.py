"""Tests for the judging REST API and heat websockets."""

from __future__ import annotations

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "surf_platform.settings")

import django

django.setup()

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth import get_user_model
from django.test import TestCase, TransactionTestCase

from judging import models, services
from judging.api import HeatViewSet
from judging.consumers import UNKNOWN_HEAT_CLOSE_CODE, heat_group_name
from judging.routing import websocket_urlpatterns

API = "/api/judging"
ROSTER_CSV = "seed,name,category,country\n" + "".join(
    f"{seed},Surfer {seed},Open,FRA\n" for seed in range(1, 13)
)


class PreviewAPITest(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="judge", password="password")
        self.client.force_login(self.user)

    def test_preview_returns_bracket_and_summary(self):
        response = self.client.post(
            f"{API}/preview/",
            {
                "participants": [{"seed": seed, "name": f"Surfer {seed}"} for seed in range(1, 13)],
                "format": "repechage",
                "variant": "V1",
            },
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([r["name"] for r in body["summary"]["rounds"]], ["Round 1", "Round 2", "Finale"])
        self.assertEqual(body["summary"]["repechage"][0]["name"], "Repechage R1")
        first_heat = body["bracket"]["rounds"][0]["heats"][0]
        self.assertEqual([slot["seed"] for slot in first_heat["slots"]], [1, 6, 7, 12])
        self.assertFalse(models.Bracket.objects.exists())

    def test_preview_validation(self):
        empty = self.client.post(f"{API}/preview/", {"participants": []}, content_type="application/json")
        self.assertEqual(empty.status_code, 400)

        duplicate = self.client.post(
            f"{API}/preview/",
            {"participants": [{"seed": 1, "name": "A"}, {"seed": 1, "name": "B"}]},
            content_type="application/json",
        )
        self.assertEqual(duplicate.status_code, 400)

        half_hybrid = self.client.post(
            f"{API}/preview/",
            {"participants": [{"seed": 1, "name": "A"}], "round2_heat_size": 3},
            content_type="application/json",
        )
        self.assertEqual(half_hybrid.status_code, 400)

        junk_size = self.client.post(
            f"{API}/preview/",
            {"participants": [{"seed": 1, "name": "A"}], "preferred_heat_size": "big"},
            content_type="application/json",
        )
        self.assertEqual(junk_size.status_code, 400)


class EventFlowAPITest(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="director", password="password")
        self.client.force_login(self.user)
        HeatViewSet._broadcast_to_heat = lambda *args, **kwargs: None

        response = self.client.post(
            f"{API}/events/",
            {"name": "Lacanau Pro", "slug": "lacanau", "location": "Lacanau"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)

    def _import_and_generate(self):
        imported = self.client.post(
            f"{API}/events/lacanau/participants/import/",
            {"csv": ROSTER_CSV},
            content_type="application/json",
        )
        self.assertEqual(imported.status_code, 200)
        self.assertEqual(imported.json()["created"], 12)
        generated = self.client.post(
            f"{API}/events/lacanau/brackets/",
            {"category": "Open"},
            content_type="application/json",
        )
        self.assertEqual(generated.status_code, 201)
        return generated.json()

    def test_import_and_generate(self):
        bracket = self._import_and_generate()

        self.assertEqual(bracket["event"], "lacanau")
        self.assertEqual(bracket["version"], 1)
        event = self.client.get(f"{API}/events/lacanau/").json()
        self.assertEqual(event["categories"], ["Open"])
        participants = self.client.get(f"{API}/events/lacanau/participants/?category=Open").json()
        self.assertEqual(len(participants), 12)

        again = self.client.post(
            f"{API}/events/lacanau/brackets/",
            {"category": "Open"},
            content_type="application/json",
        )
        self.assertEqual(again.status_code, 409)

        detail = self.client.get(f"{API}/events/lacanau/brackets/Open/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()["category"], "Open")
        self.assertEqual(self.client.get(f"{API}/events/lacanau/brackets/Junior/").status_code, 404)

    def test_generate_without_participants(self):
        response = self.client.post(
            f"{API}/events/lacanau/brackets/",
            {"category": "Open"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    def test_import_requires_a_file(self):
        response = self.client.post(
            f"{API}/events/lacanau/participants/import/", {}, content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)

    def test_scoring_and_closing_a_heat(self):
        self._import_and_generate()
        heats = self.client.get(f"{API}/heats/?category=Open").json()
        self.assertEqual(len(heats), 6)
        heat = next(item for item in heats if item["round_ref"] == "R1-H1")
        self.assertEqual([entry["color"] for entry in heat["entries"]], ["RED", "WHITE", "YELLOW", "BLUE"])
        self.assertEqual(heat["entries"][0]["name"], "Surfer 1")
        self.assertEqual(heat["entries"][0]["color_label"], "ROUGE")

        for colour, value in (("WHITE", "9.5"), ("RED", "8")):
            for judge in ("J1", "J2", "J3"):
                response = self.client.post(
                    f"{API}/heats/{heat['id']}/scores/",
                    {"surfer": colour, "wave_number": 1, "judge_id": judge, "score": value},
                    content_type="application/json",
                )
                self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["standings"][0]["surfer"], "WHITE")

        rejected = self.client.post(
            f"{API}/heats/{heat['id']}/scores/",
            {"surfer": "RED", "wave_number": 1, "judge_id": "J1", "score": "11"},
            content_type="application/json",
        )
        self.assertEqual(rejected.status_code, 400)
        not_in_heat = self.client.post(
            f"{API}/heats/{heat['id']}/scores/",
            {"surfer": "GREEN", "wave_number": 1, "judge_id": "J1", "score": "5"},
            content_type="application/json",
        )
        self.assertEqual(not_in_heat.status_code, 400)

        standings = self.client.get(f"{API}/heats/{heat['id']}/standings/").json()
        self.assertEqual(standings["heat"], "R1-H1")
        self.assertEqual(standings["status"], "open")
        self.assertEqual(standings["standings"][0]["best_two"], "9.50")

        closed = self.client.post(f"{API}/heats/{heat['id']}/close/")
        self.assertEqual(closed.status_code, 200)
        self.assertEqual(closed.json()["status"], "closed")

        round_two = next(
            item for item in self.client.get(f"{API}/heats/?event=lacanau").json() if item["round_ref"] == "R2-H1"
        )
        self.assertEqual(round_two["entries"][0]["seed"], 6)
        self.assertEqual(round_two["entries"][0]["name"], "Surfer 6")

    def test_interference_call(self):
        self._import_and_generate()
        heat = models.Heat.objects.get(bracket__category="Open", round_ref="R1-H1")
        response = self.client.post(
            f"{API}/heats/{heat.pk}/interferences/",
            {"surfer": "RED", "wave_number": 1, "judge_id": "HJ", "call_type": "INT1", "is_head_judge_override": True},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        red = next(item for item in response.json()["standings"] if item["surfer"] == "RED")
        self.assertEqual(red["interference_type"], "INT1")

    def test_anonymous_users_can_only_read(self):
        self.client.logout()
        self.assertEqual(self.client.get(f"{API}/events/").status_code, 200)
        response = self.client.post(
            f"{API}/events/",
            {"name": "Biarritz", "slug": "biarritz"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)


class HeatConsumerTest(TransactionTestCase):
    def setUp(self):
        event = models.Event.objects.create(name="Lacanau Pro", slug="lacanau")
        for seed in range(1, 9):
            models.Participant.objects.create(event=event, category="Open", seed=seed, name=f"Surfer {seed}")
        self.heat = services.generate_bracket(event, "Open").heats.get(round_ref="R1-H1")
        for judge in ("J1", "J2", "J3"):
            services.submit_score(self.heat, surfer="RED", wave_number=1, judge_id=judge, score="7")

    def test_subscribers_get_a_snapshot_then_group_messages(self):
        heat_id = self.heat.pk

        async def scenario():
            communicator = WebsocketCommunicator(URLRouter(websocket_urlpatterns), f"/ws/heats/{heat_id}/")
            connected, _ = await communicator.connect()
            snapshot = await communicator.receive_json_from()
            await get_channel_layer().group_send(
                heat_group_name(heat_id),
                {"type": "broadcast", "event": {"type": "HEAT_CLOSED", "heatId": heat_id, "standings": []}},
            )
            pushed = await communicator.receive_json_from()
            await communicator.send_json_to({"action": "refresh"})
            refreshed = await communicator.receive_json_from()
            await communicator.send_json_to({"action": "dance"})
            refused = await communicator.receive_json_from()
            await communicator.disconnect()
            return connected, snapshot, pushed, refreshed, refused

        connected, snapshot, pushed, refreshed, refused = async_to_sync(scenario)()

        self.assertTrue(connected)
        self.assertEqual(snapshot["type"], "STANDINGS")
        self.assertEqual(snapshot["heat"], "R1-H1")
        self.assertEqual(snapshot["standings"][0]["surfer"], "RED")
        self.assertEqual(pushed["type"], "HEAT_CLOSED")
        self.assertEqual(refreshed, snapshot)
        self.assertEqual(refused["type"], "ERROR")

    def test_unknown_heat_is_refused(self):
        async def scenario():
            communicator = WebsocketCommunicator(URLRouter(websocket_urlpatterns), "/ws/heats/999999/")
            return await communicator.connect()

        connected, code = async_to_sync(scenario)()

        self.assertFalse(connected)
        self.assertEqual(code, UNKNOWN_HEAT_CLOSE_CODE)
