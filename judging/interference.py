"""Judge interference calls and the penalties they turn into."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

INT1 = "INT1"
INT2 = "INT2"
CALL_TYPES = (INT1, INT2)

SOURCE_HEAD_JUDGE = "head_judge"
SOURCE_MAJORITY = "majority"

# Two effective interferences in one heat disqualify the surfer.
DISQUALIFICATION_THRESHOLD = 2


@dataclass(frozen=True)
class InterferenceCall:
    surfer: str
    wave_number: int
    judge_id: str
    call_type: str
    is_head_judge_override: bool = False
    timestamp: datetime | None = None


@dataclass(frozen=True)
class EffectiveInterference:
    surfer: str
    wave_number: int
    call_type: str
    source: str


@dataclass(frozen=True)
class InterferenceSummary:
    count: int
    call_type: str | None
    is_disqualified: bool


def _latest_first(calls: Iterable[InterferenceCall]) -> list[InterferenceCall]:
    return sorted(
        calls,
        key=lambda call: call.timestamp.timestamp() if call.timestamp else 0.0,
        reverse=True,
    )


def compute_effective_interferences(
    calls: Iterable[InterferenceCall], judge_count: int
) -> list[EffectiveInterference]:
    """Decide which calls count, per surfer and wave.

    A head judge override wins outright. Otherwise the latest call of each
    judge is a vote and a strict majority of the panel is needed; INT2 is
    checked before INT1.
    """

    calls = list(calls)
    if not calls or judge_count <= 0:
        return []

    by_target: dict[tuple[str, int], list[InterferenceCall]] = {}
    for call in calls:
        key = (call.surfer.strip().upper(), int(call.wave_number))
        by_target.setdefault(key, []).append(call)

    threshold = judge_count // 2 + 1
    effective = []
    for target_calls in by_target.values():
        ordered = _latest_first(target_calls)

        override = next((call for call in ordered if call.is_head_judge_override), None)
        if override is not None:
            effective.append(
                EffectiveInterference(
                    surfer=override.surfer,
                    wave_number=int(override.wave_number),
                    call_type=override.call_type,
                    source=SOURCE_HEAD_JUDGE,
                )
            )
            continue

        latest_by_judge: dict[str, InterferenceCall] = {}
        for call in ordered:
            latest_by_judge.setdefault(call.judge_id.strip().upper(), call)
        votes = [call.call_type for call in latest_by_judge.values()]

        for call_type in (INT2, INT1):
            if votes.count(call_type) >= threshold:
                ref = next((call for call in ordered if call.call_type == call_type), ordered[0])
                effective.append(
                    EffectiveInterference(
                        surfer=ref.surfer,
                        wave_number=int(ref.wave_number),
                        call_type=call_type,
                        source=SOURCE_MAJORITY,
                    )
                )
                break

    effective.sort(key=lambda item: (item.surfer, item.wave_number))
    return effective


def summarize_interference_by_surfer(
    effective: Iterable[EffectiveInterference],
) -> dict[str, InterferenceSummary]:
    """Count effective interferences per surfer (upper-cased key)."""

    summaries: dict[str, InterferenceSummary] = {}
    for item in effective:
        key = item.surfer.strip().upper()
        current = summaries.get(key, InterferenceSummary(count=0, call_type=None, is_disqualified=False))
        count = current.count + 1
        summaries[key] = InterferenceSummary(
            count=count,
            call_type=current.call_type or item.call_type,
            is_disqualified=count >= DISQUALIFICATION_THRESHOLD,
        )
    return summaries
