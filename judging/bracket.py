"""Bracket construction: round 1, later rounds, repechage ladder and placeholder resolution.

Everything in this module is pure. A :class:`Bracket` is an immutable value;
:func:`resolve_placeholders` returns a new bracket instead of mutating slots so
callers can persist it under their own locking.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .colors import color_for_slot
from .placeholders import (
    MAIN_PREFIX,
    REPECHAGE_PREFIX,
    PlaceholderRef,
    display_placeholder,
    heat_key,
    parse_placeholder,
)
from .seeding import (
    InvalidConfiguration,
    ParticipantSeed,
    determine_heat_count,
    determine_heat_size,
    distribute_seeds_snake,
    expand_seed_map,
    round_one_capacities,
    snake_fill,
)

logger = logging.getLogger(__name__)

FORMAT_SINGLE_ELIM = "single-elim"
FORMAT_REPECHAGE = "repechage"
FORMATS = (FORMAT_SINGLE_ELIM, FORMAT_REPECHAGE)

VARIANT_HEATS_OF_THREE = "V1"
VARIANT_MAN_ON_MAN = "V2"
VARIANTS = (VARIANT_HEATS_OF_THREE, VARIANT_MAN_ON_MAN)

BYE = "BYE"
FINAL_NAME = "Finale"
MAX_REPECHAGE_HEAT_SIZE = 4


@dataclass(frozen=True)
class HeatSlot:
    """One lane of a heat: a participant, a bye or a reference to a future qualifier."""

    color: str | None
    seed: int | None = None
    name: str | None = None
    country: str | None = None
    license: str | None = None
    participant_id: int | None = None
    placeholder: str | None = None
    bye: bool = False
    source: str | None = None

    @classmethod
    def for_participant(cls, participant: ParticipantSeed, color: str | None, source: str | None = None) -> "HeatSlot":
        return cls(
            color=color,
            seed=participant.seed,
            name=participant.name,
            country=participant.country,
            license=participant.license,
            participant_id=participant.id,
            source=source,
        )

    @classmethod
    def bye_slot(cls, color: str | None, placeholder: str = BYE) -> "HeatSlot":
        return cls(color=color, placeholder=placeholder, bye=True)

    @classmethod
    def reference(cls, ref: PlaceholderRef, color: str | None) -> "HeatSlot":
        return cls(color=color, placeholder=ref.key)

    @property
    def is_resolved(self) -> bool:
        return not self.bye and self.seed is not None

    @property
    def is_pending(self) -> bool:
        return not self.bye and self.seed is None and self.placeholder is not None

    @property
    def label(self) -> str:
        if self.is_resolved:
            return self.name or f"Seed {self.seed}"
        if self.bye:
            return self.placeholder or BYE
        return display_placeholder(self.placeholder or "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "color": self.color,
            "seed": self.seed,
            "name": self.name,
            "country": self.country,
            "license": self.license,
            "participant_id": self.participant_id,
            "placeholder": self.placeholder,
            "bye": self.bye,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HeatSlot":
        return cls(
            color=data.get("color"),
            seed=data.get("seed"),
            name=data.get("name"),
            country=data.get("country"),
            license=data.get("license"),
            participant_id=data.get("participant_id"),
            placeholder=data.get("placeholder"),
            bye=bool(data.get("bye", False)),
            source=data.get("source"),
        )


@dataclass(frozen=True)
class Heat:
    heat_number: int
    slots: tuple[HeatSlot, ...]
    round_ref: str

    @property
    def size(self) -> int:
        return len(self.slots)

    @property
    def entrant_count(self) -> int:
        return sum(1 for slot in self.slots if not slot.bye)

    def to_dict(self) -> dict[str, Any]:
        return {
            "heat_number": self.heat_number,
            "round_ref": self.round_ref,
            "slots": [slot.to_dict() for slot in self.slots],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Heat":
        return cls(
            heat_number=int(data["heat_number"]),
            slots=tuple(HeatSlot.from_dict(slot) for slot in data.get("slots", [])),
            round_ref=data.get("round_ref", ""),
        )


@dataclass(frozen=True)
class Round:
    name: str
    round_number: int
    heats: tuple[Heat, ...]
    repechage: bool = False

    @property
    def prefix(self) -> str:
        return REPECHAGE_PREFIX if self.repechage else MAIN_PREFIX

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "round_number": self.round_number,
            "repechage": self.repechage,
            "heats": [heat.to_dict() for heat in self.heats],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Round":
        return cls(
            name=data["name"],
            round_number=int(data["round_number"]),
            heats=tuple(Heat.from_dict(heat) for heat in data.get("heats", [])),
            repechage=bool(data.get("repechage", False)),
        )


@dataclass(frozen=True)
class Bracket:
    rounds: tuple[Round, ...]
    repechage: tuple[Round, ...] | None = field(default=None)

    def all_rounds(self) -> Iterator[Round]:
        yield from self.rounds
        if self.repechage:
            yield from self.repechage

    def iter_heats(self) -> Iterator[tuple[Round, Heat]]:
        for round_spec in self.all_rounds():
            for heat in round_spec.heats:
                yield round_spec, heat

    def heat(self, key: str) -> Heat | None:
        wanted = key.strip().upper()
        for _, heat in self.iter_heats():
            if heat.round_ref.upper() == wanted:
                return heat
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rounds": [round_spec.to_dict() for round_spec in self.rounds],
            "repechage": None
            if self.repechage is None
            else [round_spec.to_dict() for round_spec in self.repechage],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Bracket":
        repechage = data.get("repechage")
        return cls(
            rounds=tuple(Round.from_dict(round_spec) for round_spec in data.get("rounds", [])),
            repechage=None
            if repechage is None
            else tuple(Round.from_dict(round_spec) for round_spec in repechage),
        )


def _as_participant(value: ParticipantSeed | Mapping[str, Any]) -> ParticipantSeed:
    if isinstance(value, ParticipantSeed):
        return value
    return ParticipantSeed(
        seed=int(value["seed"]),
        name=str(value.get("name") or ""),
        country=value.get("country") or None,
        license=value.get("license") or None,
        id=value.get("id", value.get("participant_id")),
    )


def build_round_one(
    participants: Iterable[ParticipantSeed | Mapping[str, Any]],
    *,
    preferred_heat_size: int | str | None = "auto",
) -> Round:
    """Seed round 1 with balanced heats; unknown seeds become ``Seed n`` byes."""

    roster = [_as_participant(participant) for participant in participants]
    if not roster:
        raise InvalidConfiguration("Cannot build heats without participants.")

    count = len(roster)
    heat_size = determine_heat_size(count, preferred_heat_size)
    heat_count = determine_heat_count(count, heat_size)
    capacities = round_one_capacities(count, heat_size, heat_count)
    seed_map = distribute_seeds_snake(
        [participant.seed for participant in roster],
        heat_size=heat_size,
        heat_count=heat_count,
        heat_sizes=capacities,
    )

    heats = []
    for (heat_number, entrants), seeds in zip(expand_seed_map(seed_map, roster), seed_map):
        slots = []
        for index, (participant, seed) in enumerate(zip(entrants, seeds.seeds)):
            color = color_for_slot(len(entrants), index)
            if seed is None:
                slots.append(HeatSlot.bye_slot(color))
            elif participant is None:
                logger.warning("Seed %s has no participant; heat %s gets a bye", seed, heat_number)
                slots.append(HeatSlot.bye_slot(color, placeholder=f"Seed {seed}"))
            else:
                slots.append(HeatSlot.for_participant(participant, color))
        heats.append(
            Heat(
                heat_number=heat_number,
                slots=tuple(slots),
                round_ref=heat_key(MAIN_PREFIX, 1, heat_number),
            )
        )
    return Round(name="Round 1", round_number=1, heats=tuple(heats))


def _advance_count(heat: Heat) -> int:
    # Two-lane heats are man-on-man: only the winner goes through.
    return 1 if heat.size <= 2 else 2


def _qualifiers(round_spec: Round, per_heat: int | None = None) -> list[PlaceholderRef]:
    refs = []
    for heat in round_spec.heats:
        wanted = per_heat if per_heat is not None else _advance_count(heat)
        for position in range(1, min(wanted, heat.entrant_count) + 1):
            refs.append(
                PlaceholderRef(
                    prefix=round_spec.prefix,
                    round=round_spec.round_number,
                    heat=heat.heat_number,
                    position=position,
                )
            )
    return refs


def _reference_round(
    refs: Sequence[PlaceholderRef],
    heat_size: int,
    round_number: int,
    *,
    name: str | None = None,
    repechage: bool = False,
) -> Round:
    heat_count = max(1, math.ceil(len(refs) / heat_size))
    buckets = snake_fill(refs, [heat_size] * heat_count)
    prefix = REPECHAGE_PREFIX if repechage else MAIN_PREFIX
    heats = []
    for index, bucket in enumerate(buckets):
        slots = tuple(
            HeatSlot.bye_slot(color_for_slot(heat_size, lane))
            if ref is None
            else HeatSlot.reference(ref, color_for_slot(heat_size, lane))
            for lane, ref in enumerate(bucket)
        )
        heats.append(
            Heat(
                heat_number=index + 1,
                slots=slots,
                round_ref=heat_key(prefix, round_number, index + 1),
            )
        )
    return Round(
        name=name or f"Round {round_number}",
        round_number=round_number,
        heats=tuple(heats),
        repechage=repechage,
    )


def _man_on_man_rounds(refs: list[PlaceholderRef], first_round_number: int) -> list[Round]:
    rounds = []
    round_number = first_round_number
    while refs:
        round_spec = _reference_round(refs, 2, round_number)
        rounds.append(round_spec)
        if len(round_spec.heats) == 1:
            break
        refs = _qualifiers(round_spec, per_heat=1)
        round_number += 1
    return rounds


def build_next_rounds(
    round_one: Round,
    *,
    variant: str = VARIANT_HEATS_OF_THREE,
    round2_heat_size: int | None = None,
    round2_advance: int | None = None,
) -> list[Round]:
    """Build every main round after round 1 as placeholder heats.

    ``V1`` runs round 2 in heats of three and a final of the top two of each
    round-2 heat. ``V2`` goes man-on-man from round 2. Passing both
    ``round2_heat_size`` and ``round2_advance`` gives a custom round 2 followed
    by man-on-man rounds. The last round is always named ``Finale``.
    """

    if variant not in VARIANTS:
        raise InvalidConfiguration(f"Unknown variant '{variant}'.")
    hybrid = round2_heat_size is not None or round2_advance is not None
    if hybrid and (round2_heat_size is None or round2_advance is None):
        raise InvalidConfiguration("round2_heat_size and round2_advance go together.")
    if hybrid and (round2_heat_size < 1 or round2_advance < 1):
        raise InvalidConfiguration("Round 2 heat size and advance count must be positive.")

    if len(round_one.heats) <= 1:
        return []
    qualifiers = _qualifiers(round_one)
    if not qualifiers:
        return []

    rounds: list[Round] = []
    if hybrid:
        round_two = _reference_round(qualifiers, round2_heat_size, 2)
        rounds.append(round_two)
        if len(round_two.heats) > 1:
            rounds.extend(_man_on_man_rounds(_qualifiers(round_two, per_heat=round2_advance), 3))
    elif variant == VARIANT_MAN_ON_MAN:
        rounds.extend(_man_on_man_rounds(qualifiers, 2))
    else:
        round_two = _reference_round(qualifiers, 3, 2)
        rounds.append(round_two)
        if len(round_two.heats) > 1:
            finalists = _qualifiers(round_two, per_heat=2)
            if finalists:
                rounds.append(_reference_round(finalists, len(finalists), 3))

    if rounds:
        rounds[-1] = replace(rounds[-1], name=FINAL_NAME)
    return rounds


def _round_one_losers(round_one: Round) -> list[PlaceholderRef]:
    refs = []
    for heat in round_one.heats:
        for index, slot in enumerate(heat.slots):
            if index < 2 or slot.bye:
                continue
            refs.append(
                PlaceholderRef(
                    prefix=round_one.prefix,
                    round=round_one.round_number,
                    heat=heat.heat_number,
                    position=index + 1,
                )
            )
    return refs


def _losers(round_spec: Round, first_position: int) -> list[PlaceholderRef]:
    return [
        PlaceholderRef(
            prefix=round_spec.prefix,
            round=round_spec.round_number,
            heat=heat.heat_number,
            position=position,
        )
        for heat in round_spec.heats
        for position in range(first_position, heat.entrant_count + 1)
    ]


def build_repechage(round_one: Round, main_rounds: Sequence[Round]) -> list[Round]:
    """Build the losers' ladder running one step behind the main bracket.

    Round-1 lanes 3 and beyond fill ``Repechage R1``; without them there is no
    ladder. Every later main round then feeds its losers (positions 3+ of a
    regular round, 2+ of the final), together with the qualifiers of the
    previous repechage round, into the next repechage round.
    """

    initial = _round_one_losers(round_one)
    if not initial:
        return []

    heat_size = max(heat.size for heat in round_one.heats)
    ladder = [_reference_round(initial, heat_size, 1, name="Repechage R1", repechage=True)]
    ladder_size = min(heat_size, MAX_REPECHAGE_HEAT_SIZE)

    for index, round_spec in enumerate(main_rounds):
        losers = _losers(round_spec, 2 if index == len(main_rounds) - 1 else 3)
        if not losers:
            continue
        number = len(ladder) + 1
        combined = _qualifiers(ladder[-1]) + losers
        ladder.append(
            _reference_round(
                combined,
                ladder_size,
                number,
                name=f"Repechage R{number}",
                repechage=True,
            )
        )
    return ladder


def compute_heats(
    participants: Iterable[ParticipantSeed | Mapping[str, Any]],
    *,
    format: str = FORMAT_SINGLE_ELIM,
    variant: str = VARIANT_HEATS_OF_THREE,
    preferred_heat_size: int | str | None = "auto",
    round2_heat_size: int | None = None,
    round2_advance: int | None = None,
) -> Bracket:
    """Generate the full bracket for one category."""

    if format not in FORMATS:
        raise InvalidConfiguration(f"Unknown format '{format}'.")
    if variant not in VARIANTS:
        raise InvalidConfiguration(f"Unknown variant '{variant}'.")

    round_one = build_round_one(participants, preferred_heat_size=preferred_heat_size)
    next_rounds = build_next_rounds(
        round_one,
        variant=variant,
        round2_heat_size=round2_heat_size,
        round2_advance=round2_advance,
    )
    repechage = None
    if format == FORMAT_REPECHAGE:
        repechage = tuple(build_repechage(round_one, next_rounds))

    bracket = Bracket(rounds=(round_one, *next_rounds), repechage=repechage)
    logger.debug(
        "Computed %s/%s bracket: %s",
        format,
        variant,
        ", ".join(f"{r.name}={len(r.heats)}" for r in bracket.all_rounds()),
    )
    return bracket


def _finisher(standings: Sequence[Any], position: int) -> ParticipantSeed | None:
    if position < 1 or position > len(standings):
        return None
    entry = standings[position - 1]
    if entry is None:
        return None
    return _as_participant(entry)


def resolve_placeholders(
    bracket: Bracket,
    standings_by_heat: Mapping[str, Sequence[ParticipantSeed | Mapping[str, Any]]],
) -> Bracket:
    """Return a copy of ``bracket`` with known qualifiers written into their slots.

    ``standings_by_heat`` maps heat keys (``R1-H2``, ``RP1-H1``) to the
    finishing order of that heat. Slots keep their colour and remember their
    reference in ``source``, so applying the same standings again gives the
    same bracket. A resolved slot whose position is no longer filled goes back
    to its placeholder.
    """

    lookup = {key.strip().upper(): list(order) for key, order in standings_by_heat.items()}

    def resolve_slot(slot: HeatSlot) -> HeatSlot:
        if slot.bye:
            return slot
        ref = parse_placeholder(slot.source or (None if slot.is_resolved else slot.placeholder))
        if ref is None:
            return slot
        order = lookup.get(ref.heat_key)
        if order is None:
            return slot
        participant = _finisher(order, ref.position)
        if participant is None:
            # Corrected results no longer place anyone here.
            return HeatSlot.reference(ref, slot.color) if slot.source else slot
        return HeatSlot.for_participant(participant, slot.color, source=ref.key)

    def resolve_round(round_spec: Round) -> Round:
        heats = tuple(
            replace(heat, slots=tuple(resolve_slot(slot) for slot in heat.slots))
            for heat in round_spec.heats
        )
        return replace(round_spec, heats=heats)

    return Bracket(
        rounds=tuple(resolve_round(round_spec) for round_spec in bracket.rounds),
        repechage=None
        if bracket.repechage is None
        else tuple(resolve_round(round_spec) for round_spec in bracket.repechage),
    )


def bracket_summary(bracket: Bracket) -> dict[str, Any]:
    def describe(round_spec: Round) -> dict[str, Any]:
        return {
            "name": round_spec.name,
            "round_number": round_spec.round_number,
            "heat_count": len(round_spec.heats),
            "heat_sizes": [heat.size for heat in round_spec.heats],
        }

    return {
        "rounds": [describe(round_spec) for round_spec in bracket.rounds],
        "repechage": None
        if bracket.repechage is None
        else [describe(round_spec) for round_spec in bracket.repechage],
    }
