"""Websocket consumers pushing live heat standings."""

from __future__ import annotations

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from . import services
from .models import Heat

HEAT_GROUP_PREFIX = "heat_"
UNKNOWN_HEAT_CLOSE_CODE = 4404


def heat_group_name(heat_id) -> str:
    return f"{HEAT_GROUP_PREFIX}{heat_id}"


@database_sync_to_async
def _standings_snapshot(heat_id):
    heat = Heat.objects.filter(pk=heat_id).first()
    if heat is None:
        return None
    return {
        "type": "STANDINGS",
        "heatId": heat.pk,
        "heat": heat.round_ref,
        "status": heat.status,
        "standings": [stats.to_dict() for stats in services.compute_heat_standings(heat)],
    }


class HeatConsumer(AsyncJsonWebsocketConsumer):
    """Judges' tablets and the beach screen follow one heat each.

    A new subscriber gets the current standings straight away; later updates
    arrive through the heat group whenever a mark or interference is recorded.
    """

    group_name = None

    async def connect(self):
        self.heat_id = int(self.scope["url_route"]["kwargs"]["heat_id"])
        snapshot = await _standings_snapshot(self.heat_id)
        if snapshot is None:
            await self.close(code=UNKNOWN_HEAT_CLOSE_CODE)
            return
        self.group_name = heat_group_name(self.heat_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send_json(snapshot)

    async def disconnect(self, code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content, **kwargs):
        if content.get("action") != "refresh":
            await self.send_json({"type": "ERROR", "detail": "Only 'refresh' is supported."})
            return
        snapshot = await _standings_snapshot(self.heat_id)
        if snapshot is not None:
            await self.send_json(snapshot)

    async def broadcast(self, event):
        await self.send_json(event["event"])
