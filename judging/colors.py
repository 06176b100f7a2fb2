"""Jersey colours used as lane indicators inside a heat."""

from __future__ import annotations

PALETTE: tuple[str, ...] = ("RED", "WHITE", "YELLOW", "BLUE", "GREEN", "BLACK")

COLOR_LABELS: dict[str, str] = {
    "RED": "ROUGE",
    "WHITE": "BLANC",
    "YELLOW": "JAUNE",
    "BLUE": "BLEU",
    "GREEN": "VERT",
    "BLACK": "NOIR",
}

# French keys are accepted everywhere a colour is read back from storage.
_FRENCH_TO_KEY = {label: key for key, label in COLOR_LABELS.items()}

COLOR_HEX: dict[str, str] = {
    "RED": "#ef4444",
    "WHITE": "#f8fafc",
    "YELLOW": "#eab308",
    "BLUE": "#3b82f6",
    "GREEN": "#22c55e",
    "BLACK": "#1f2937",
}
COLOR_HEX.update({label: COLOR_HEX[key] for key, label in COLOR_LABELS.items()})


def color_set(heat_size: int) -> list[str]:
    """Return the ordered colours for a heat of ``heat_size`` lanes."""

    if heat_size <= 0:
        return []
    return list(PALETTE[: min(heat_size, len(PALETTE))])


def color_for_slot(heat_size: int, index: int) -> str | None:
    """Colour of lane ``index`` (0-based); lanes past six reuse the palette."""

    colors = color_set(heat_size)
    if not colors or index < 0:
        return None
    return colors[index % len(colors)]


def normalize_color(value: str | None) -> str | None:
    if not value:
        return None
    text = value.strip().upper()
    if text in COLOR_LABELS:
        return text
    return _FRENCH_TO_KEY.get(text)


def color_label(value: str | None) -> str:
    """French display label for a colour given in either language."""

    key = normalize_color(value)
    if key is None:
        return (value or "").strip().upper()
    return COLOR_LABELS[key]
