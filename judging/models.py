"""Database models for surf judging events."""
from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .bracket import FORMAT_REPECHAGE, FORMAT_SINGLE_ELIM, VARIANT_HEATS_OF_THREE, VARIANT_MAN_ON_MAN
from .bracket import Bracket as BracketSpec
from .colors import PALETTE
from .interference import INT1, INT2


class Event(models.Model):
    """A surf contest made of several categories."""

    name = models.CharField(max_length=120)
    slug = models.SlugField(unique=True)
    date = models.DateField(blank=True, null=True)
    location = models.CharField(max_length=120, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ("-date", "name")

    def __str__(self) -> str:
        return self.name

    def categories(self) -> list[str]:
        return list(
            self.participants.order_by("category").values_list("category", flat=True).distinct()
        )


class Participant(models.Model):
    """A ranked surfer of one category; the seed is unique inside the category."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="participants")
    category = models.CharField(max_length=64)
    seed = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    name = models.CharField(max_length=120)
    country = models.CharField(max_length=80, blank=True)
    license = models.CharField(max_length=64, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "category", "seed"], name="unique_seed_per_category"),
        ]
        ordering = ("event", "category", "seed")

    def __str__(self) -> str:
        return f"#{self.seed} {self.name} ({self.category})"

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class Bracket(models.Model):
    """Generated heats of a category, stored as the serialized bracket value."""

    class Format(models.TextChoices):
        SINGLE_ELIM = FORMAT_SINGLE_ELIM, "Single elimination"
        REPECHAGE = FORMAT_REPECHAGE, "Repechage"

    class Variant(models.TextChoices):
        HEATS_OF_THREE = VARIANT_HEATS_OF_THREE, "Heats of 3"
        MAN_ON_MAN = VARIANT_MAN_ON_MAN, "Man on man"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="brackets")
    category = models.CharField(max_length=64)
    format = models.CharField(max_length=16, choices=Format.choices, default=Format.SINGLE_ELIM)
    variant = models.CharField(max_length=4, choices=Variant.choices, default=Variant.HEATS_OF_THREE)
    preferred_heat_size = models.CharField(max_length=8, default="auto")
    payload = models.JSONField(default=dict)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "category"], name="unique_bracket_per_category"),
        ]
        ordering = ("event", "category")

    def __str__(self) -> str:
        return f"{self.event.name}: {self.category} ({self.get_format_display()})"

    def as_spec(self) -> BracketSpec:
        return BracketSpec.from_dict(self.payload)


class Heat(models.Model):
    """A heat of a bracket, mirrored from the payload so it can be scored."""

    class Status(models.TextChoices):
        PLANNED = "planned", "Planned"
        OPEN = "open", "Open"
        CLOSED = "closed", "Closed"

    bracket = models.ForeignKey(Bracket, on_delete=models.CASCADE, related_name="heats")
    round_no = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    round_name = models.CharField(max_length=32)
    heat_number = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    is_repechage = models.BooleanField(default=False)
    round_ref = models.CharField(max_length=16)
    heat_size = models.PositiveIntegerField(default=4)
    status = models.CharField(max_length=8, choices=Status.choices, default=Status.PLANNED)
    judge_count = models.PositiveIntegerField(default=3, validators=[MinValueValidator(1)])
    max_waves = models.PositiveIntegerField(default=12, validators=[MinValueValidator(1)])
    closed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["bracket", "round_ref"], name="unique_heat_ref_per_bracket"),
        ]
        ordering = ("bracket", "is_repechage", "round_no", "heat_number")

    def __str__(self) -> str:
        return f"{self.bracket.category} {self.round_ref}"

    @property
    def is_closed(self) -> bool:
        return self.status == self.Status.CLOSED


class HeatEntry(models.Model):
    """A lane of a heat: participant, bye or unresolved qualifier reference."""

    heat = models.ForeignKey(Heat, on_delete=models.CASCADE, related_name="entries")
    position = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    color = models.CharField(max_length=8, choices=[(color, color.title()) for color in PALETTE])
    participant = models.ForeignKey(
        Participant,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="heat_entries",
    )
    seed = models.PositiveIntegerField(blank=True, null=True)
    placeholder = models.CharField(max_length=64, blank=True)
    is_bye = models.BooleanField(default=False)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["heat", "position"], name="unique_lane_per_heat"),
        ]
        ordering = ("heat", "position")

    def __str__(self) -> str:
        who = self.participant.name if self.participant_id else (self.placeholder or "empty")
        return f"{self.heat} {self.color}: {who}"


class Score(models.Model):
    """One judge's mark for one wave of a surfer (identified by jersey colour)."""

    heat = models.ForeignKey(Heat, on_delete=models.CASCADE, related_name="scores")
    surfer = models.CharField(max_length=8)
    wave_number = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    judge_id = models.CharField(max_length=32)
    score = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("10"))],
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["heat", "surfer", "wave_number", "judge_id"],
                name="unique_mark_per_judge_wave",
            ),
        ]
        ordering = ("heat", "surfer", "wave_number", "judge_id")

    def __str__(self) -> str:
        return f"{self.surfer} W{self.wave_number} {self.judge_id}: {self.score}"

    def clean(self) -> None:
        super().clean()
        if self.heat_id and self.wave_number and self.wave_number > self.heat.max_waves:
            raise ValidationError({"wave_number": f"This heat allows {self.heat.max_waves} waves."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class InterferenceCall(models.Model):
    """A judge's interference call; the head judge may override the panel."""

    class CallType(models.TextChoices):
        INT1 = INT1, "Interference (second wave halved)"
        INT2 = INT2, "Interference (second wave removed)"

    heat = models.ForeignKey(Heat, on_delete=models.CASCADE, related_name="interference_calls")
    surfer = models.CharField(max_length=8)
    wave_number = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    judge_id = models.CharField(max_length=32)
    call_type = models.CharField(max_length=4, choices=CallType.choices)
    is_head_judge_override = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("heat", "created_at")

    def __str__(self) -> str:
        return f"{self.call_type} {self.surfer} W{self.wave_number} by {self.judge_id}"


class AuditLog(models.Model):
    """Simple audit trail for judging actions."""

    ts = models.DateTimeField(auto_now_add=True)
    action = models.CharField(max_length=64)
    payload = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ("-ts",)

    def __str__(self) -> str:
        return f"{self.action} at {self.ts:%Y-%m-%d %H:%M:%S}"
