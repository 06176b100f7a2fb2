"""Admin registrations for the judging application."""
from django.contrib import admin

from . import models


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("name", "date", "slug", "location")
    list_filter = ("date",)
    search_fields = ("name", "slug", "location")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(models.Participant)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = ("seed", "name", "category", "country", "event")
    list_filter = ("event", "category")
    search_fields = ("name", "license", "country")


class HeatInline(admin.TabularInline):
    model = models.Heat
    extra = 0
    fields = ("round_ref", "round_name", "status", "judge_count", "max_waves")
    readonly_fields = ("round_ref", "round_name")


@admin.register(models.Bracket)
class BracketAdmin(admin.ModelAdmin):
    list_display = ("event", "category", "format", "variant", "version", "updated_at")
    list_filter = ("event", "format", "variant")
    readonly_fields = ("version", "created_at", "updated_at")
    inlines = [HeatInline]


class HeatEntryInline(admin.TabularInline):
    model = models.HeatEntry
    extra = 0
    fields = ("position", "color", "participant", "seed", "placeholder", "is_bye")


@admin.register(models.Heat)
class HeatAdmin(admin.ModelAdmin):
    list_display = ("round_ref", "bracket", "round_name", "status", "judge_count")
    list_filter = ("status", "is_repechage", "bracket__event")
    inlines = [HeatEntryInline]


@admin.register(models.Score)
class ScoreAdmin(admin.ModelAdmin):
    list_display = ("heat", "surfer", "wave_number", "judge_id", "score", "updated_at")
    list_filter = ("heat__bracket__event", "judge_id")


@admin.register(models.InterferenceCall)
class InterferenceCallAdmin(admin.ModelAdmin):
    list_display = ("heat", "surfer", "wave_number", "judge_id", "call_type", "is_head_judge_override")
    list_filter = ("call_type", "is_head_judge_override")


@admin.register(models.AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("action", "ts")
    list_filter = ("action",)
    readonly_fields = ("ts", "action", "payload")
