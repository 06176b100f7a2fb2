"""Persistence glue between the judging core and the database."""

from __future__ import annotations

import csv
import io
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from . import models
from .bracket import Bracket, HeatSlot, compute_heats, resolve_placeholders
from .colors import normalize_color
from .interference import CALL_TYPES, InterferenceCall, compute_effective_interferences
from .seeding import ParticipantSeed
from .standings import (
    ScoreRecord,
    SurferStats,
    calculate_surfer_stats,
    effective_judge_count,
    finishing_order,
    round_score,
)

logger = logging.getLogger(__name__)

__all__ = [
    "BracketExists",
    "ConcurrentUpdateError",
    "ScoreRejected",
    "parse_participants_csv",
    "import_participants_csv",
    "participant_seeds",
    "generate_bracket",
    "submit_score",
    "record_interference",
    "compute_heat_standings",
    "heat_finishing_order",
    "close_heat",
    "resolve_bracket",
]

COLUMN_ALIASES: dict[str, str] = {
    "seed": "seed",
    "classement": "seed",
    "ranking": "seed",
    "name": "name",
    "surfer": "name",
    "athlete": "name",
    "nom": "name",
    "category": "category",
    "division": "category",
    "categorie": "category",
    "country": "country",
    "nation": "country",
    "club": "country",
    "pays/club": "country",
    "pays": "country",
    "license": "license",
    "licence": "license",
    "identifiant": "license",
    "id": "license",
}

MAX_SCORE = Decimal("10")


class ScoreRejected(ValueError):
    """Raised when a judge's mark cannot be accepted."""


class BracketExists(ValueError):
    """Raised when heats already exist for a category and overwrite is off."""


class ConcurrentUpdateError(ValueError):
    """Raised when a bracket kept changing under placeholder resolution."""


def _setting(name: str, default: int) -> int:
    return int(getattr(settings, name, default))


def _audit(action: str, **payload: Any) -> None:
    models.AuditLog.objects.create(action=action, payload=payload)


# ----------------------------------------------------------------------
# Participants
# ----------------------------------------------------------------------
def _decode(upload) -> str:
    if isinstance(upload, str):
        return upload
    raw = upload.read()
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def parse_participants_csv(text: str) -> tuple[list[dict[str, Any]], list[str]]:
    """Parse a participant sheet into rows sorted by seed plus row errors."""

    reader = csv.DictReader(io.StringIO(text))
    rows: list[dict[str, Any]] = []
    errors: list[str] = []
    seen: dict[str, set[int]] = {}
    for line_number, raw in enumerate(reader, start=2):
        if not any((value or "").strip() for value in raw.values() if isinstance(value, str)):
            continue
        row: dict[str, str] = {}
        for key, value in raw.items():
            if key is None:
                continue
            header = key.strip().lower()
            row[COLUMN_ALIASES.get(header, header)] = (value or "").strip()

        seed_text = row.get("seed", "")
        try:
            seed = int(seed_text)
        except ValueError:
            seed = 0
        if seed < 1:
            errors.append(f"Row {line_number}: invalid seed '{seed_text or 'empty'}'")
            continue
        name = row.get("name", "")
        if not name:
            errors.append(f"Row {line_number}: name is required")
            continue
        category = row.get("category", "")
        if not category:
            errors.append(f"Row {line_number}: category is required")
            continue
        category_seeds = seen.setdefault(category, set())
        if seed in category_seeds:
            errors.append(f"Row {line_number}: duplicate seed {seed} for category {category}")
            continue
        category_seeds.add(seed)
        rows.append(
            {
                "seed": seed,
                "name": name,
                "category": category,
                "country": row.get("country", ""),
                "license": row.get("license", ""),
                "line": line_number,
            }
        )
    rows.sort(key=lambda item: (item["category"], item["seed"]))
    return rows, errors


def import_participants_csv(event: models.Event, upload) -> dict[str, object]:
    """Create or update participants of ``event`` from a CSV upload or string."""

    rows, errors = parse_participants_csv(_decode(upload))
    created = updated = 0
    with transaction.atomic():
        for row in rows:
            try:
                with transaction.atomic():
                    _, was_created = models.Participant.objects.update_or_create(
                        event=event,
                        category=row["category"],
                        seed=row["seed"],
                        defaults={
                            "name": row["name"],
                            "country": row["country"],
                            "license": row["license"],
                        },
                    )
            except ValidationError as exc:
                errors.append(f"Row {row['line']}: {'; '.join(exc.messages)}")
                continue
            if was_created:
                created += 1
            else:
                updated += 1
    logger.info(
        "Imported participants for %s: %d created, %d updated, %d errors",
        event.slug,
        created,
        updated,
        len(errors),
    )
    _audit("participants.import", event=event.slug, created=created, updated=updated, errors=len(errors))
    return {"created": created, "updated": updated, "errors": errors}


def participant_seeds(event: models.Event, category: str) -> list[ParticipantSeed]:
    return [
        ParticipantSeed(
            seed=participant.seed,
            name=participant.name,
            country=participant.country or None,
            license=participant.license or None,
            id=participant.pk,
        )
        for participant in event.participants.filter(category=category).order_by("seed")
    ]


# ----------------------------------------------------------------------
# Brackets
# ----------------------------------------------------------------------
def _participant_for_slot(event: models.Event, category: str, slot: HeatSlot) -> models.Participant | None:
    if not slot.is_resolved:
        return None
    participants = models.Participant.objects.filter(event=event, category=category)
    if slot.participant_id:
        found = participants.filter(pk=slot.participant_id).first()
        if found is not None:
            return found
    return participants.filter(seed=slot.seed).first()


def _sync_entries(bracket_obj: models.Bracket, spec: Bracket) -> None:
    """Mirror slot contents of ``spec`` onto the heat entry rows."""

    heats = {heat.round_ref: heat for heat in bracket_obj.heats.all()}
    for _, heat_spec in spec.iter_heats():
        heat = heats.get(heat_spec.round_ref)
        if heat is None:
            continue
        for position, slot in enumerate(heat_spec.slots, start=1):
            participant = _participant_for_slot(bracket_obj.event, bracket_obj.category, slot)
            models.HeatEntry.objects.update_or_create(
                heat=heat,
                position=position,
                defaults={
                    "color": slot.color or "",
                    "participant": participant,
                    "seed": slot.seed if slot.is_resolved else None,
                    "placeholder": "" if slot.is_resolved else (slot.placeholder or ""),
                    "is_bye": slot.bye,
                },
            )


@transaction.atomic
def generate_bracket(
    event: models.Event,
    category: str,
    *,
    format: str = models.Bracket.Format.SINGLE_ELIM,
    variant: str = models.Bracket.Variant.HEATS_OF_THREE,
    preferred_heat_size: int | str = "auto",
    round2_heat_size: int | None = None,
    round2_advance: int | None = None,
    overwrite: bool = False,
) -> models.Bracket:
    """Compute the heats of a category and persist them."""

    existing = models.Bracket.objects.filter(event=event, category=category).first()
    if existing is not None:
        if not overwrite:
            raise BracketExists(f"Heats already exist for {category}.")
        existing.delete()

    spec = compute_heats(
        participant_seeds(event, category),
        format=format,
        variant=variant,
        preferred_heat_size=preferred_heat_size,
        round2_heat_size=round2_heat_size,
        round2_advance=round2_advance,
    )
    bracket_obj = models.Bracket.objects.create(
        event=event,
        category=category,
        format=format,
        variant=variant,
        preferred_heat_size=str(preferred_heat_size),
        payload=spec.to_dict(),
    )

    judge_count = _setting("JUDGING_DEFAULT_JUDGE_COUNT", 3)
    max_waves = _setting("JUDGING_MAX_WAVES", 12)
    for round_spec, heat_spec in spec.iter_heats():
        models.Heat.objects.create(
            bracket=bracket_obj,
            round_no=round_spec.round_number,
            round_name=round_spec.name,
            heat_number=heat_spec.heat_number,
            is_repechage=round_spec.repechage,
            round_ref=heat_spec.round_ref,
            heat_size=heat_spec.size,
            judge_count=judge_count,
            max_waves=max_waves,
        )
    _sync_entries(bracket_obj, spec)

    heat_count = bracket_obj.heats.count()
    logger.info("Generated %s heats for %s / %s (%s, %s)", heat_count, event.slug, category, format, variant)
    _audit(
        "bracket.generate",
        event=event.slug,
        category=category,
        format=format,
        variant=variant,
        heats=heat_count,
    )
    return bracket_obj


# ----------------------------------------------------------------------
# Scoring
# ----------------------------------------------------------------------
def _heat_surfers(heat: models.Heat) -> list[str]:
    return list(
        heat.entries.filter(is_bye=False).order_by("position").values_list("color", flat=True)
    )


def _check_open(heat: models.Heat, surfer: str, wave_number: int) -> str:
    if heat.is_closed:
        raise ScoreRejected("Heat is closed.")
    colour = normalize_color(surfer) or (surfer or "").strip().upper()
    surfers = _heat_surfers(heat)
    if surfers and colour not in surfers:
        raise ScoreRejected(f"{colour or 'Surfer'} is not in this heat.")
    if wave_number < 1 or wave_number > heat.max_waves:
        raise ScoreRejected(f"Wave must be between 1 and {heat.max_waves}.")
    return colour


def _mark_open(heat: models.Heat) -> None:
    if heat.status == models.Heat.Status.PLANNED:
        heat.status = models.Heat.Status.OPEN
        heat.save(update_fields=["status"])


def submit_score(
    heat: models.Heat,
    *,
    surfer: str,
    wave_number: int,
    judge_id: str,
    score: Decimal | float | str,
) -> models.Score:
    """Store a judge's mark; a new mark for the same wave replaces the old one."""

    colour = _check_open(heat, surfer, wave_number)
    judge = (judge_id or "").strip().upper()
    if not judge:
        raise ScoreRejected("Judge is required.")
    try:
        value = round_score(str(score).replace(",", "."))
    except InvalidOperation as exc:
        raise ScoreRejected(f"Invalid score '{score}'.") from exc
    if not value.is_finite() or value < 0 or value > MAX_SCORE:
        raise ScoreRejected("Score must be between 0 and 10.")

    with transaction.atomic():
        mark, _ = models.Score.objects.update_or_create(
            heat=heat,
            surfer=colour,
            wave_number=wave_number,
            judge_id=judge,
            defaults={"score": value},
        )
        _mark_open(heat)
    logger.debug("Score %s for %s wave %s in %s by %s", value, colour, wave_number, heat.round_ref, judge)
    return mark


def record_interference(
    heat: models.Heat,
    *,
    surfer: str,
    wave_number: int,
    judge_id: str,
    call_type: str,
    is_head_judge_override: bool = False,
) -> models.InterferenceCall:
    colour = _check_open(heat, surfer, wave_number)
    kind = (call_type or "").strip().upper()
    if kind not in CALL_TYPES:
        raise ScoreRejected(f"Unknown interference type '{call_type}'.")
    call = models.InterferenceCall.objects.create(
        heat=heat,
        surfer=colour,
        wave_number=wave_number,
        judge_id=(judge_id or "").strip().upper(),
        call_type=kind,
        is_head_judge_override=is_head_judge_override,
    )
    _audit("interference.call", heat=heat.pk, surfer=colour, wave=wave_number, type=kind)
    return call


def compute_heat_standings(heat: models.Heat, allow_incomplete: bool | None = None) -> list[SurferStats]:
    """Live standings of a heat; incomplete waves count once the heat is closed."""

    if allow_incomplete is None:
        allow_incomplete = heat.is_closed
    records = [
        ScoreRecord(
            surfer=mark.surfer,
            wave_number=mark.wave_number,
            judge_id=mark.judge_id,
            score=mark.score,
        )
        for mark in heat.scores.all()
    ]
    calls = [
        InterferenceCall(
            surfer=call.surfer,
            wave_number=call.wave_number,
            judge_id=call.judge_id,
            call_type=call.call_type,
            is_head_judge_override=call.is_head_judge_override,
            timestamp=call.created_at,
        )
        for call in heat.interference_calls.all()
    ]
    surfers = _heat_surfers(heat) or sorted({record.surfer for record in records})
    judge_count = effective_judge_count(records, heat.judge_count)
    return calculate_surfer_stats(
        records,
        surfers,
        judge_count,
        max_waves=heat.max_waves,
        allow_incomplete=allow_incomplete,
        effective_interferences=compute_effective_interferences(calls, judge_count),
    )


def heat_finishing_order(heat: models.Heat) -> list[ParticipantSeed | None]:
    """Finishers of a heat in standings order; unresolved lanes give ``None``."""

    entries = {
        entry.color: entry
        for entry in heat.entries.filter(is_bye=False).select_related("participant")
    }
    order: list[ParticipantSeed | None] = []
    for stats in compute_heat_standings(heat, allow_incomplete=True):
        entry = entries.get(stats.surfer)
        participant = entry.participant if entry else None
        if participant is None:
            order.append(None)
            continue
        order.append(
            ParticipantSeed(
                seed=participant.seed,
                name=participant.name,
                country=participant.country or None,
                license=participant.license or None,
                id=participant.pk,
            )
        )
    return order


def _standings_by_heat(bracket_obj: models.Bracket) -> dict[str, list[ParticipantSeed | None]]:
    closed = bracket_obj.heats.filter(status=models.Heat.Status.CLOSED)
    return {heat.round_ref: heat_finishing_order(heat) for heat in closed}


def close_heat(heat: models.Heat) -> list[SurferStats]:
    """Freeze a heat and push its qualifiers into the following heats."""

    with transaction.atomic():
        heat.status = models.Heat.Status.CLOSED
        heat.closed_at = timezone.now()
        heat.save(update_fields=["status", "closed_at"])
        standings = compute_heat_standings(heat, allow_incomplete=True)
        _audit(
            "heat.close",
            heat=heat.pk,
            round_ref=heat.round_ref,
            order=finishing_order(standings),
        )
    logger.info("Closed heat %s of %s", heat.round_ref, heat.bracket.category)
    resolve_bracket(heat.bracket)
    return standings


def resolve_bracket(bracket_obj: models.Bracket, standings_by_heat: dict[str, Iterable] | None = None) -> models.Bracket:
    """Write known qualifiers into the stored bracket.

    The payload is replaced only if the version read is still current; on a
    conflict the pass is recomputed from fresh data.
    """

    retries = max(1, _setting("JUDGING_RESOLVE_RETRIES", 3))
    for attempt in range(1, retries + 1):
        with transaction.atomic():
            current = models.Bracket.objects.select_related("event").get(pk=bracket_obj.pk)
            order = standings_by_heat if standings_by_heat is not None else _standings_by_heat(current)
            resolved = resolve_placeholders(current.as_spec(), order)
            payload = resolved.to_dict()
            if payload == current.payload:
                _sync_entries(current, resolved)
                return current
            updated = models.Bracket.objects.filter(pk=current.pk, version=current.version).update(
                payload=payload,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            if updated:
                current.refresh_from_db()
                _sync_entries(current, resolved)
                logger.info("Resolved placeholders of %s (version %s)", current, current.version)
                _audit("bracket.resolve", bracket=current.pk, version=current.version)
                return current
        logger.warning("Bracket %s changed during resolution, retry %d/%d", bracket_obj.pk, attempt, retries)
    raise ConcurrentUpdateError(f"Bracket {bracket_obj.pk} could not be resolved after {retries} attempts.")
