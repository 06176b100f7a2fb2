"""Live heat standings: wave averages, best-two totals and ranking."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Sequence

from .interference import INT1, INT2, EffectiveInterference, summarize_interference_by_surfer

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_MAX_WAVES = 12
TRIMMED_MEAN_MIN_JUDGES = 5


def round_score(value: Any) -> Decimal:
    """Quantize to hundredths, halves rounded up (scores are never negative)."""

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ScoreRecord:
    surfer: str
    wave_number: int
    judge_id: str
    score: Decimal


@dataclass(frozen=True)
class WaveScore:
    wave: int
    score: Decimal
    judge_scores: dict[str, Decimal] = field(default_factory=dict)
    is_complete: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "wave": self.wave,
            "score": str(self.score),
            "judge_scores": {judge: str(value) for judge, value in self.judge_scores.items()},
            "is_complete": self.is_complete,
        }


@dataclass(frozen=True)
class SurferStats:
    surfer: str
    waves: tuple[WaveScore, ...]
    best_two: Decimal
    rank: int
    is_disqualified: bool = False
    interference_count: int = 0
    interference_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "surfer": self.surfer,
            "rank": self.rank,
            "best_two": str(self.best_two),
            "is_disqualified": self.is_disqualified,
            "interference_count": self.interference_count,
            "interference_type": self.interference_type,
            "waves": [wave.to_dict() for wave in self.waves],
        }


def wave_average(scores: Sequence[Decimal], judge_count: int) -> Decimal:
    """Mean of the judges' marks for one wave.

    With five judges or more and a full panel the highest and lowest marks
    are dropped first.
    """

    if not scores:
        return ZERO
    values = sorted(round_score(score) for score in scores)
    if judge_count >= TRIMMED_MEAN_MIN_JUDGES and len(values) >= judge_count:
        trimmed = values[1:-1]
        if trimmed:
            return round_score(sum(trimmed) / len(trimmed))
    return round_score(sum(values) / len(values))


def rank_surfers(items: Iterable[tuple[str, Decimal]]) -> list[tuple[str, Decimal, int]]:
    """Sort by best two descending, surfer ascending; ties share the first index.

    Scores of 15, 15 and 14 rank 1, 1 and 3.
    """

    ordered = sorted(
        ((surfer, round_score(best_two)) for surfer, best_two in items),
        key=lambda item: (-item[1], item[0]),
    )
    ranked = []
    current_rank = 0
    last_score = None
    for index, (surfer, best_two) in enumerate(ordered):
        if last_score is None or best_two != last_score:
            current_rank = index + 1
            last_score = best_two
        ranked.append((surfer, best_two, current_rank))
    return ranked


def _normalize(value: str | None) -> str:
    return (value or "").strip().upper()


def _surfer_waves(
    records: Iterable[ScoreRecord], judge_count: int, max_waves: int, allow_incomplete: bool
) -> list[WaveScore]:
    by_wave: dict[int, dict[str, Decimal]] = {}
    for record in records:
        if record.wave_number < 1 or record.wave_number > max_waves:
            continue
        # A later mark from the same judge replaces the earlier one.
        by_wave.setdefault(record.wave_number, {})[_normalize(record.judge_id)] = round_score(record.score)

    waves = []
    for number in range(1, max_waves + 1):
        judge_scores = by_wave.get(number, {})
        if allow_incomplete:
            complete = len(judge_scores) > 0
        else:
            complete = len(judge_scores) == judge_count
        waves.append(
            WaveScore(
                wave=number,
                score=wave_average(list(judge_scores.values()), judge_count),
                judge_scores=judge_scores,
                is_complete=complete,
            )
        )

    last_with_data = -1
    for index, wave in enumerate(waves):
        if wave.score > 0 or wave.judge_scores:
            last_with_data = index
    return waves[: last_with_data + 1] if last_with_data >= 0 else waves[:1]


def calculate_surfer_stats(
    scores: Iterable[ScoreRecord],
    surfers: Sequence[str],
    judge_count: int,
    max_waves: int = DEFAULT_MAX_WAVES,
    allow_incomplete: bool = False,
    effective_interferences: Iterable[EffectiveInterference] = (),
) -> list[SurferStats]:
    """Compute the standings of a heat, best placed first.

    Only complete waves count towards the best two. An effective INT1 halves
    the second wave, INT2 removes it and two interferences disqualify; a
    disqualified surfer scores zero and is ranked after every other surfer.
    """

    scores = list(scores)
    interference = summarize_interference_by_surfer(effective_interferences)

    provisional = []
    for surfer in surfers:
        key = _normalize(surfer)
        waves = _surfer_waves(
            (record for record in scores if _normalize(record.surfer) == key),
            judge_count,
            max_waves,
            allow_incomplete,
        )
        best = sorted((wave.score for wave in waves if wave.is_complete), reverse=True)
        wave_a = best[0] if best else ZERO
        wave_b = best[1] if len(best) > 1 else ZERO

        summary = interference.get(key)
        disqualified = bool(summary and summary.is_disqualified)
        if disqualified:
            best_two = ZERO
        elif summary and summary.call_type == INT1:
            best_two = round_score(wave_a + wave_b / 2)
        elif summary and summary.call_type == INT2:
            best_two = round_score(wave_a)
        else:
            best_two = round_score(wave_a + wave_b)

        provisional.append(
            SurferStats(
                surfer=surfer,
                waves=tuple(waves),
                best_two=best_two,
                rank=1,
                is_disqualified=disqualified,
                interference_count=summary.count if summary else 0,
                interference_type=summary.call_type if summary else None,
            )
        )

    ranked = rank_surfers(
        (stats.surfer, stats.best_two) for stats in provisional if not stats.is_disqualified
    )
    rank_by_surfer = {surfer: rank for surfer, _, rank in ranked}
    disqualified_rank = len(ranked) + 1

    results = [
        replace(stats, rank=disqualified_rank if stats.is_disqualified else rank_by_surfer[stats.surfer])
        for stats in provisional
    ]
    results.sort(key=lambda stats: (stats.is_disqualified, stats.rank, stats.surfer))
    return results


def effective_judge_count(scores: Iterable[ScoreRecord], configured: int | None = None) -> int:
    """Configured panel size when known, otherwise the judges seen in the scores."""

    if configured and configured > 0:
        return configured
    judges = {_normalize(record.judge_id) for record in scores if record.judge_id}
    return max(len(judges), 1)


def finishing_order(stats: Sequence[SurferStats]) -> list[str]:
    return [item.surfer for item in sorted(stats, key=lambda s: (s.is_disqualified, s.rank, s.surfer))]

