"""REST API for heat generation, scoring and standings."""

from __future__ import annotations

from typing import Any, Dict

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from . import services
from .bracket import bracket_summary, compute_heats
from .consumers import heat_group_name
from .models import Bracket, Event, Heat
from .seeding import InvalidConfiguration, ParticipantSeed
from .serializers import (
    BracketSerializer,
    EventSerializer,
    GenerateBracketSerializer,
    HeatSerializer,
    InterferenceInputSerializer,
    ParticipantSerializer,
    PreviewSerializer,
    ScoreInputSerializer,
)


def _bracket_options(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "format": data["format"],
        "variant": data["variant"],
        "preferred_heat_size": data["preferred_heat_size"],
        "round2_heat_size": data.get("round2_heat_size"),
        "round2_advance": data.get("round2_advance"),
    }


class PreviewViewSet(viewsets.GenericViewSet):
    """Compute a bracket from a posted participant list without saving it."""

    serializer_class = PreviewSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        participants = [
            ParticipantSeed(
                seed=row["seed"],
                name=row["name"],
                country=row.get("country") or None,
                license=row.get("license") or None,
                id=row.get("id"),
            )
            for row in data["participants"]
        ]
        try:
            bracket = compute_heats(participants, **_bracket_options(data))
        except InvalidConfiguration as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"bracket": bracket.to_dict(), "summary": bracket_summary(bracket)})


class EventViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Event.objects.all()
    serializer_class = EventSerializer
    lookup_field = "slug"

    @action(
        detail=True,
        methods=["post"],
        url_path="participants/import",
        parser_classes=[MultiPartParser, FormParser, JSONParser],
    )
    def import_participants(self, request, slug=None):
        event = self.get_object()
        upload = request.FILES.get("file") or request.data.get("csv")
        if not upload:
            return Response({"detail": "Upload a CSV file."}, status=status.HTTP_400_BAD_REQUEST)
        summary = services.import_participants_csv(event, upload)
        return Response(summary, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def participants(self, request, slug=None):
        event = self.get_object()
        queryset = event.participants.all()
        category = request.query_params.get("category")
        if category:
            queryset = queryset.filter(category=category)
        return Response(ParticipantSerializer(queryset, many=True).data)

    @action(detail=True, methods=["get", "post"])
    def brackets(self, request, slug=None):
        event = self.get_object()
        if request.method == "GET":
            return Response(BracketSerializer(event.brackets.all(), many=True).data)

        serializer = GenerateBracketSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not event.participants.filter(category=data["category"]).exists():
            return Response(
                {"detail": f"No participants in category {data['category']}."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            bracket = services.generate_bracket(
                event,
                data["category"],
                overwrite=data["overwrite"],
                **_bracket_options(data),
            )
        except services.BracketExists as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        except InvalidConfiguration as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(BracketSerializer(bracket).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path=r"brackets/(?P<category>[^/]+)")
    def bracket_detail(self, request, slug=None, category=None):
        event = self.get_object()
        bracket = Bracket.objects.filter(event=event, category=category).first()
        if bracket is None:
            return Response({"detail": "No heats for this category."}, status=status.HTTP_404_NOT_FOUND)
        return Response(BracketSerializer(bracket).data)


class HeatViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = HeatSerializer

    def get_queryset(self):
        queryset = Heat.objects.select_related("bracket", "bracket__event").prefetch_related(
            "entries__participant"
        )
        event = self.request.query_params.get("event")
        if event:
            queryset = queryset.filter(bracket__event__slug=event)
        category = self.request.query_params.get("category")
        if category:
            queryset = queryset.filter(bracket__category=category)
        return queryset

    @action(detail=True, methods=["post"])
    def scores(self, request, pk=None):
        heat = self.get_object()
        serializer = ScoreInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            mark = services.submit_score(heat, **serializer.validated_data)
        except services.ScoreRejected as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        standings = [stats.to_dict() for stats in services.compute_heat_standings(heat)]
        self._broadcast_to_heat(heat, {"type": "STANDINGS", "heatId": heat.pk, "standings": standings})
        return Response(
            {
                "accepted": True,
                "surfer": mark.surfer,
                "wave_number": mark.wave_number,
                "score": str(mark.score),
                "standings": standings,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"])
    def interferences(self, request, pk=None):
        heat = self.get_object()
        serializer = InterferenceInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            services.record_interference(heat, **serializer.validated_data)
        except services.ScoreRejected as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        standings = [stats.to_dict() for stats in services.compute_heat_standings(heat)]
        self._broadcast_to_heat(heat, {"type": "STANDINGS", "heatId": heat.pk, "standings": standings})
        return Response({"accepted": True, "standings": standings}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def standings(self, request, pk=None):
        heat = self.get_object()
        standings = services.compute_heat_standings(heat)
        return Response(
            {
                "heat": heat.round_ref,
                "status": heat.status,
                "standings": [stats.to_dict() for stats in standings],
            }
        )

    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        heat = self.get_object()
        try:
            standings = services.close_heat(heat)
        except services.ConcurrentUpdateError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        payload = [stats.to_dict() for stats in standings]
        self._broadcast_to_heat(heat, {"type": "HEAT_CLOSED", "heatId": heat.pk, "standings": payload})
        return Response({"heat": heat.round_ref, "status": heat.status, "standings": payload})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _broadcast_to_heat(self, heat: Heat, payload: Dict[str, Any]) -> None:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        async_to_sync(channel_layer.group_send)(
            heat_group_name(heat.pk),
            {"type": "broadcast", "event": payload},
        )
