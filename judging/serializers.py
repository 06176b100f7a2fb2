"""Serializers for the judging REST endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

from rest_framework import serializers

from .bracket import FORMATS, VARIANTS
from .colors import COLOR_HEX, color_label
from .interference import CALL_TYPES
from .models import Bracket, Event, Heat, HeatEntry, Participant


class BracketOptionsSerializer(serializers.Serializer):
    format = serializers.ChoiceField(choices=FORMATS, default=FORMATS[0])
    variant = serializers.ChoiceField(choices=VARIANTS, default=VARIANTS[0])
    preferred_heat_size = serializers.CharField(default="auto", max_length=8)
    round2_heat_size = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    round2_advance = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate_preferred_heat_size(self, value: str) -> str:
        text = value.strip().lower()
        if text != "auto" and not text.isdigit():
            raise serializers.ValidationError("Use 'auto' or a number of surfers.")
        return text

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        size = attrs.get("round2_heat_size")
        advance = attrs.get("round2_advance")
        if (size is None) != (advance is None):
            raise serializers.ValidationError("round2_heat_size and round2_advance go together.")
        return attrs


class ParticipantInputSerializer(serializers.Serializer):
    seed = serializers.IntegerField(min_value=1)
    name = serializers.CharField(max_length=120)
    country = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    license = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    id = serializers.IntegerField(required=False, allow_null=True)


class PreviewSerializer(BracketOptionsSerializer):
    participants = ParticipantInputSerializer(many=True, allow_empty=False)

    def validate_participants(self, value):
        seeds = [row["seed"] for row in value]
        if len(seeds) != len(set(seeds)):
            raise serializers.ValidationError("Seeds must be unique.")
        return value


class GenerateBracketSerializer(BracketOptionsSerializer):
    category = serializers.CharField(max_length=64)
    overwrite = serializers.BooleanField(default=False)


class EventSerializer(serializers.ModelSerializer):
    categories = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = ["id", "name", "slug", "date", "location", "notes", "categories"]
        read_only_fields = ["id", "categories"]

    def get_categories(self, obj: Event) -> list[str]:
        return obj.categories()


class ParticipantSerializer(serializers.ModelSerializer):
    class Meta:
        model = Participant
        fields = ["id", "category", "seed", "name", "country", "license"]


class BracketSerializer(serializers.ModelSerializer):
    event = serializers.SlugRelatedField(slug_field="slug", read_only=True)

    class Meta:
        model = Bracket
        fields = [
            "id",
            "event",
            "category",
            "format",
            "variant",
            "preferred_heat_size",
            "version",
            "payload",
            "updated_at",
        ]
        read_only_fields = fields


class HeatEntrySerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="participant.name", default=None, read_only=True)
    color_label = serializers.SerializerMethodField()
    color_hex = serializers.SerializerMethodField()

    class Meta:
        model = HeatEntry
        fields = ["position", "color", "color_label", "color_hex", "seed", "name", "placeholder", "is_bye"]
        read_only_fields = fields

    def get_color_label(self, obj: HeatEntry) -> str:
        return color_label(obj.color)

    def get_color_hex(self, obj: HeatEntry) -> str | None:
        return COLOR_HEX.get(obj.color)


class HeatSerializer(serializers.ModelSerializer):
    category = serializers.CharField(source="bracket.category", read_only=True)
    entries = HeatEntrySerializer(many=True, read_only=True)

    class Meta:
        model = Heat
        fields = [
            "id",
            "category",
            "round_ref",
            "round_name",
            "round_no",
            "heat_number",
            "is_repechage",
            "status",
            "judge_count",
            "max_waves",
            "entries",
        ]
        read_only_fields = fields


class ScoreInputSerializer(serializers.Serializer):
    surfer = serializers.CharField(max_length=8)
    wave_number = serializers.IntegerField(min_value=1)
    judge_id = serializers.CharField(max_length=32)
    score = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("10"),
    )


class InterferenceInputSerializer(serializers.Serializer):
    surfer = serializers.CharField(max_length=8)
    wave_number = serializers.IntegerField(min_value=1)
    judge_id = serializers.CharField(max_length=32)
    call_type = serializers.ChoiceField(choices=CALL_TYPES)
    is_head_judge_override = serializers.BooleanField(default=False)
