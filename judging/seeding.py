"""Heat-size policy and serpentine ("snake") seeding."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence, TypeVar

__all__ = [
    "InvalidConfiguration",
    "HeatSeedMap",
    "ParticipantSeed",
    "determine_heat_size",
    "determine_heat_count",
    "round_one_capacities",
    "snake_fill",
    "distribute_seeds_snake",
    "expand_seed_map",
]

logger = logging.getLogger(__name__)

MIN_HEAT_SIZE = 2
MAX_HEAT_SIZE = 4

T = TypeVar("T")


class InvalidConfiguration(ValueError):
    """Raised when heats cannot be generated from the supplied options."""


@dataclass(frozen=True)
class ParticipantSeed:
    """A ranked competitor of a category, identified by its seed."""

    seed: int
    name: str
    country: str | None = None
    license: str | None = None
    id: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "seed": self.seed,
            "name": self.name,
            "country": self.country,
            "license": self.license,
            "id": self.id,
        }


@dataclass(frozen=True)
class HeatSeedMap:
    heat_number: int
    seeds: tuple[int | None, ...]


def _coerce_preferred(preferred: int | str | None) -> int | None:
    if preferred is None:
        return None
    if isinstance(preferred, str):
        text = preferred.strip().lower()
        if text in ("", "auto"):
            return None
        try:
            return int(text)
        except ValueError as exc:
            raise InvalidConfiguration(f"Invalid heat size '{preferred}'.") from exc
    return int(preferred)


def determine_heat_size(participant_count: int, preferred: int | str | None = "auto") -> int:
    """Return the number of lanes per heat for a category.

    An explicit preference is clamped to 2..4. ``"auto"`` keeps small fields in
    a single heat, uses heats of three up to six surfers and heats of four above.
    """

    if participant_count < 1:
        raise InvalidConfiguration("At least one participant is required.")
    size = _coerce_preferred(preferred)
    if size is not None:
        return max(MIN_HEAT_SIZE, min(MAX_HEAT_SIZE, size))
    if participant_count <= 4:
        return participant_count
    if participant_count <= 6:
        return 3
    return 4


def determine_heat_count(participant_count: int, heat_size: int) -> int:
    return max(1, math.ceil(participant_count / max(1, heat_size)))


def round_one_capacities(participant_count: int, heat_size: int, heat_count: int) -> list[int]:
    """Balanced per-heat capacities, e.g. ten surfers in heats of four -> [4, 3, 3]."""

    if heat_count < 1:
        raise InvalidConfiguration("heat_count must be at least 1.")
    base = participant_count // heat_count
    remainder = participant_count % heat_count
    capacities: list[int] = []
    for index in range(heat_count):
        candidate = base + (1 if index < remainder else 0)
        capacities.append(heat_size if candidate <= 0 else min(heat_size, candidate))
    return capacities


class _SerpentineCursor:
    """Walks heat indexes 0..n-1, n-1..0, 0..n-1 and so on."""

    def __init__(self, heat_count: int):
        self.heat_count = heat_count
        self.index = 0
        self.direction = 1

    def advance(self, force_step: bool = False) -> None:
        if self.heat_count == 1:
            return
        if self.direction == 1:
            if self.index == self.heat_count - 1:
                self.direction = -1
                if force_step:
                    self.index = max(0, self.index - 1)
            else:
                self.index += 1
        elif self.index == 0:
            self.direction = 1
            if force_step:
                self.index = min(self.heat_count - 1, self.index + 1)
        else:
            self.index -= 1


def snake_fill(items: Iterable[T], capacities: Sequence[int]) -> list[list[T | None]]:
    """Distribute ``items`` in serpentine order and pad every heat with byes.

    Items keep their input order; callers sort them first when the order is a
    ranking. ``None`` marks a bye.
    """

    heat_count = len(capacities)
    if heat_count < 1:
        raise InvalidConfiguration("heat_count must be at least 1.")

    heats: list[list[T | None]] = [[] for _ in range(heat_count)]
    cursor = _SerpentineCursor(heat_count)
    placed = 0
    for item in items:
        attempts = 0
        while len(heats[cursor.index]) >= capacities[cursor.index] and attempts < heat_count:
            cursor.advance(force_step=True)
            attempts += 1
        heats[cursor.index].append(item)
        placed += 1
        cursor.advance()

    byes = max(0, sum(capacities) - placed)
    added = 0
    for heat, capacity in zip(heats, capacities):
        while len(heat) < capacity and added < byes:
            heat.append(None)
            added += 1
    if added < byes:
        logger.debug("Capacity drift: %d byes placed round-robin", byes - added)
        fallback = 0
        while added < byes:
            heats[fallback % heat_count].append(None)
            fallback += 1
            added += 1
    return heats


def distribute_seeds_snake(
    seeds: Iterable[int],
    *,
    heat_size: int,
    heat_count: int,
    heat_sizes: Sequence[int] | None = None,
) -> list[HeatSeedMap]:
    """Place seeds into ``heat_count`` heats using snake seeding.

    Twelve seeds into three heats of four give 1-6-7-12, 2-5-8-11 and 3-4-9-10.
    ``heat_sizes`` overrides the per-heat capacity when it has one entry per heat.
    """

    if heat_count < 1:
        raise InvalidConfiguration("heat_count must be at least 1.")
    if heat_sizes is not None and len(heat_sizes) == heat_count:
        capacities = [max(0, int(size or 0)) for size in heat_sizes]
    else:
        capacities = [heat_size] * heat_count

    buckets = snake_fill(sorted(seeds), capacities)
    return [
        HeatSeedMap(heat_number=index + 1, seeds=tuple(bucket))
        for index, bucket in enumerate(buckets)
    ]


def expand_seed_map(
    seed_map: Iterable[HeatSeedMap], participants: Iterable[ParticipantSeed]
) -> list[tuple[int, list[ParticipantSeed | None]]]:
    """Replace seeds by participants; byes and unknown seeds become ``None``."""

    lookup = {participant.seed: participant for participant in participants}
    return [
        (heat.heat_number, [None if seed is None else lookup.get(seed) for seed in heat.seeds])
        for heat in seed_map
    ]
