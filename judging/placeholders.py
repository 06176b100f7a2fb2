"""Encoding and parsing of ``R1-H2-P3`` style qualifier references."""

from __future__ import annotations

import re
from dataclasses import dataclass

MAIN_PREFIX = "R"
REPECHAGE_PREFIX = "RP"

DEFAULT_LABEL = "QUALIFIÉ"
REPECHAGE_LABEL = "Repêchage"

_COMPACT_RE = re.compile(r"^(RP?)(\d+)-H(\d+)-P(\d+)$", re.IGNORECASE)
# Display variants such as "QUALIFIÉ R1-H1 (P1)" or "Repêchage R1-H1 P3".
_LOOSE_RE = re.compile(
    r"(?<![A-Z])(RP?)(\d+)\s*-\s*H(\d+)\s*(?:\(\s*P(\d+)\s*\)|-\s*P(\d+)|\s+P(\d+))",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PlaceholderRef:
    prefix: str
    round: int
    heat: int
    position: int

    @property
    def is_repechage(self) -> bool:
        return self.prefix == REPECHAGE_PREFIX

    @property
    def heat_key(self) -> str:
        return heat_key(self.prefix, self.round, self.heat)

    @property
    def key(self) -> str:
        return make_placeholder(self.round, self.heat, self.position, prefix=self.prefix)

    def __str__(self) -> str:
        return self.key


def heat_key(prefix: str, round_number: int, heat_number: int) -> str:
    """Identifier of a heat inside a bracket, e.g. ``R2-H1`` or ``RP1-H3``."""

    return f"{prefix}{round_number}-H{heat_number}"


def make_placeholder(round_number: int, heat_number: int, position: int, prefix: str = MAIN_PREFIX) -> str:
    if prefix not in (MAIN_PREFIX, REPECHAGE_PREFIX):
        raise ValueError(f"Unknown placeholder prefix '{prefix}'.")
    return f"{heat_key(prefix, round_number, heat_number)}-P{position}"


def parse_placeholder(value: str | None) -> PlaceholderRef | None:
    """Parse a compact or display placeholder; ``None`` when nothing matches."""

    if not value:
        return None
    text = value.strip()
    match = _COMPACT_RE.match(text)
    if match:
        prefix, round_number, heat_number, position = match.groups()
    else:
        match = _LOOSE_RE.search(text)
        if not match:
            return None
        prefix, round_number, heat_number = match.group(1, 2, 3)
        position = next(group for group in match.group(4, 5, 6) if group is not None)
    return PlaceholderRef(
        prefix=prefix.upper(),
        round=int(round_number),
        heat=int(heat_number),
        position=int(position),
    )


def display_placeholder(ref: PlaceholderRef | str, label: str | None = None) -> str:
    """Human label for a reference: ``QUALIFIÉ R1-H1 (P1)``."""

    if isinstance(ref, str):
        parsed = parse_placeholder(ref)
        if parsed is None:
            return ref
        ref = parsed
    if label is None:
        label = REPECHAGE_LABEL if ref.is_repechage else DEFAULT_LABEL
    return f"{label} {ref.heat_key} (P{ref.position})"
