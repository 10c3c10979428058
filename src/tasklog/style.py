"""Color helpers and the level/task line formats."""

from __future__ import annotations

import os
from typing import Callable

# ── ANSI helpers ─────────────────────────────────────────────────────

_color_enabled = "NO_COLOR" not in os.environ


def set_color_enabled(value: bool) -> None:
    global _color_enabled
    _color_enabled = value


def get_color_enabled() -> bool:
    return _color_enabled


def _code(open_: int, close: int) -> Callable[[str], str]:
    start = f"\x1b[{open_}m"
    end = f"\x1b[{close}m"

    def apply(text: str) -> str:
        if not _color_enabled:
            return text
        # Re-open after nested closes so the outer style survives them.
        return start + text.replace(end, start) + end

    return apply


bold = _code(1, 22)
red = _code(31, 39)
green = _code(32, 39)
yellow = _code(33, 39)
blue = _code(34, 39)
magenta = _code(35, 39)
gray = _code(90, 39)


# ── Line formats ─────────────────────────────────────────────────────

_LEVELS: dict[str, tuple[str, Callable[[str], str]]] = {
    "info": ("ℹ", blue),
    "warn": ("⚠", yellow),
    "error": ("✗", red),
    "success": ("✓", green),
}


def sprint_level(prefix: str, message: str, level: str | None = None) -> str:
    """Return ``prefix message`` with the level's symbol and color."""
    if level is None:
        return f"{prefix} {message}"
    try:
        symbol, color = _LEVELS[level]
    except KeyError:
        raise ValueError(f"unknown log level: {level!r}") from None
    return f"{color(symbol + ' ' + prefix)} {message}"


def sprint_task(prefix: str, text: str) -> dict[str, str]:
    """Return the line for every displayable task state."""
    return {
        "started": magenta("- " + prefix) + f" {text} ...",
        "completed": sprint_level(prefix, text, "success") + " ... " + bold(green("done")),
        "aborted": sprint_level(prefix, text, "warn") + " ... " + bold(yellow("aborted")),
        "failed": sprint_level(prefix, text, "error") + " ... " + bold(red("failed")),
        "skipped": gray("✓ " + prefix) + f" {text} ... " + gray("skipped"),
    }
