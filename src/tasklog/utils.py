"""Terminal text utilities: ANSI token extraction, SGR state, cell widths.

Provides the building blocks shared by the line splitter and the diff
renderer: recognising escape sequences (which occupy zero columns),
replaying SGR codes into a comparable style record, and iterating a styled
string as a sequence of visible cells.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, replace
from typing import Iterator, NamedTuple, Union

import grapheme
import wcwidth as _wcwidth


# ---------------------------------------------------------------------------
# Regex patterns for ANSI / OSC / APC sequences
# ---------------------------------------------------------------------------

_STRIP_RE = re.compile(
    r"\x1b\[[0-9;?]*[@-~]"                  # CSI
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"    # OSC
    r"|\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"     # APC
)

SGR_RESET = "\x1b[0m"


# ---------------------------------------------------------------------------
# Width cache (capped at 512 entries)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


# ---------------------------------------------------------------------------
# Grapheme width
# ---------------------------------------------------------------------------

def grapheme_width(g: str) -> int:
    """Return the terminal display width of a single grapheme cluster.

    Rules:
    1. Zero-width characters (control, combining marks, etc.) -> 0
    2. Emoji (VS16, ZWJ sequences, skin tones, flags) -> 2
    3. Otherwise delegate to wcwidth for the first codepoint.
    """
    if not g:
        return 0

    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or (0x7F <= cp <= 0x9F):
            return 0
        if cp <= 0x7E:
            return 1

    cached = _width_cache.get(g)
    if cached is not None:
        return cached
    return _cache_width(g, _measure(g))


def _measure(g: str) -> int:
    if len(g) == 1:
        return max(_wcwidth.wcwidth(g), 0)

    for ch in g:
        cp = ord(ch)
        if cp in (0xFE0F, 0x200D):
            return 2
        if 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return 2

    first = g[0]
    if ord(first) >= 0x1F000:
        return 2

    cat = unicodedata.category(first)
    if cat.startswith("M") or cat == "Cf":
        return 0

    return max(_wcwidth.wcwidth(first), 0)


# ---------------------------------------------------------------------------
# strip_ansi
# ---------------------------------------------------------------------------

def strip_ansi(text: str) -> str:
    """Remove every recognised escape sequence from *text*."""
    return _STRIP_RE.sub("", text)


# ---------------------------------------------------------------------------
# extract_ansi_code
# ---------------------------------------------------------------------------

def extract_ansi_code(text: str, pos: int) -> tuple[str, int] | None:
    """Extract an escape sequence starting at *pos* in *text*.

    Returns ``(code, length)`` or ``None`` if no complete sequence starts at
    *pos*.  Handles CSI (``ESC[`` params, final byte), OSC and APC sequences
    (terminated by ``BEL`` or ``ESC\\``).  Any well-formed CSI is accepted,
    so unknown codes pass through as opaque zero-width tokens.
    """
    if pos >= len(text) or text[pos] != "\x1b":
        return None

    if pos + 1 >= len(text):
        return None

    next_ch = text[pos + 1]

    if next_ch == "[":
        i = pos + 2
        while i < len(text):
            ch = text[i]
            if ch.isdigit() or ch in ";?":
                i += 1
                continue
            if "@" <= ch <= "~":
                code = text[pos : i + 1]
                return (code, len(code))
            break
        return None

    if next_ch in "]_":
        i = pos + 2
        while i < len(text):
            ch = text[i]
            if ch == "\x07":
                code = text[pos : i + 1]
                return (code, len(code))
            if ch == "\x1b" and i + 1 < len(text) and text[i + 1] == "\\":
                code = text[pos : i + 2]
                return (code, len(code))
            i += 1
        return None

    return None


# ---------------------------------------------------------------------------
# AnsiState
# ---------------------------------------------------------------------------

@dataclass
class AnsiState:
    """Active SGR (Select Graphic Rendition) attributes.

    Each attribute holds the code that enabled it, or ``None`` when off, so
    that two states compare equal only when every attribute matches and the
    state can be re-emitted with :meth:`get_active_codes`.
    """

    bold: str | None = None
    dim: str | None = None
    italic: str | None = None
    underline: str | None = None
    blink: str | None = None
    inverse: str | None = None
    hidden: str | None = None
    strikethrough: str | None = None
    color: str | None = None
    background: str | None = None

    def copy(self) -> AnsiState:
        return replace(self)

    def process(self, code: str) -> None:
        """Update the state from an SGR sequence like ``\\x1b[1;31m``.

        Non-SGR sequences and unknown parameters are ignored.
        """
        if not code.startswith("\x1b[") or not code.endswith("m"):
            return

        params_str = code[2:-1]
        if not params_str:
            self.clear()
            return
        if not all(p.isdigit() for p in params_str.split(";") if p):
            return

        params = params_str.split(";")
        i = 0
        while i < len(params):
            p = params[i]
            val = int(p) if p else 0

            if val == 0:
                self.clear()
            elif val == 1:
                self.bold = "\x1b[1m"
            elif val == 2:
                self.dim = "\x1b[2m"
            elif val == 3:
                self.italic = "\x1b[3m"
            elif val == 4:
                self.underline = "\x1b[4m"
            elif val == 5:
                self.blink = "\x1b[5m"
            elif val == 7:
                self.inverse = "\x1b[7m"
            elif val == 8:
                self.hidden = "\x1b[8m"
            elif val == 9:
                self.strikethrough = "\x1b[9m"
            elif val == 22:
                self.bold = None
                self.dim = None
            elif val == 23:
                self.italic = None
            elif val == 24:
                self.underline = None
            elif val == 25:
                self.blink = None
            elif val == 27:
                self.inverse = None
            elif val == 28:
                self.hidden = None
            elif val == 29:
                self.strikethrough = None
            elif 30 <= val <= 37 or 90 <= val <= 97:
                self.color = f"\x1b[{val}m"
            elif 40 <= val <= 47 or 100 <= val <= 107:
                self.background = f"\x1b[{val}m"
            elif val in (38, 48):
                extended, consumed = _extended_color(val, params, i)
                if extended is not None:
                    if val == 38:
                        self.color = extended
                    else:
                        self.background = extended
                i += consumed
            elif val == 39:
                self.color = None
            elif val == 49:
                self.background = None

            i += 1

    def clear(self) -> None:
        """Reset all attributes to off."""
        self.bold = None
        self.dim = None
        self.italic = None
        self.underline = None
        self.blink = None
        self.inverse = None
        self.hidden = None
        self.strikethrough = None
        self.color = None
        self.background = None

    def get_active_codes(self) -> str:
        """Return a string of ANSI codes that reactivate the current state."""
        parts = [
            self.bold,
            self.dim,
            self.italic,
            self.underline,
            self.blink,
            self.inverse,
            self.hidden,
            self.strikethrough,
            self.color,
            self.background,
        ]
        return "".join(p for p in parts if p is not None)

    def has_active_codes(self) -> bool:
        return bool(self.get_active_codes())

    def sgr(self) -> str:
        """Return a sequence that sets a terminal to exactly this state."""
        return SGR_RESET + self.get_active_codes()


def _extended_color(
    val: int, params: list[str], i: int
) -> tuple[str | None, int]:
    """Parse ``38;5;N`` / ``38;2;R;G;B`` (or the 48 variants).

    Returns the normalised code and the number of extra params consumed.
    """
    if i + 1 >= len(params):
        return None, 0
    mode = int(params[i + 1]) if params[i + 1] else 0
    if mode == 5 and i + 2 < len(params):
        return f"\x1b[{val};5;{params[i + 2]}m", 2
    if mode == 2 and i + 4 < len(params):
        r, g, b = params[i + 2], params[i + 3], params[i + 4]
        return f"\x1b[{val};2;{r};{g};{b}m", 4
    return None, 1


def ansi_state_at(text: str, start: AnsiState | None = None) -> AnsiState:
    """Replay every SGR token in *text* and return the resulting state."""
    state = start.copy() if start is not None else AnsiState()
    for token in iter_tokens(text):
        if isinstance(token, Escape):
            state.process(token.code)
    return state


# ---------------------------------------------------------------------------
# Token iteration
# ---------------------------------------------------------------------------

class Escape(NamedTuple):
    """A zero-width escape sequence."""

    code: str


class Cell(NamedTuple):
    """A visible grapheme cluster (or a newline) with its column width."""

    text: str
    width: int


Token = Union[Escape, Cell]


def iter_tokens(text: str) -> Iterator[Token]:
    """Yield *text* as escape tokens and grapheme-cluster cells.

    A newline is always its own cell with width 0; ``\\r\\n`` is treated as
    a carriage return followed by a newline.
    """
    run_start = 0
    i = 0
    n = len(text)
    while i < n:
        if text[i] == "\x1b":
            extracted = extract_ansi_code(text, i)
            if extracted is not None:
                if run_start < i:
                    yield from _iter_run(text[run_start:i])
                code, length = extracted
                yield Escape(code)
                i += length
                run_start = i
                continue
        i += 1
    if run_start < n:
        yield from _iter_run(text[run_start:])


def _iter_run(run: str) -> Iterator[Cell]:
    """Split a run without escape sequences into cells."""
    if all(0x20 <= ord(ch) <= 0x7E or ch == "\n" for ch in run):
        for ch in run:
            yield Cell(ch, 0 if ch == "\n" else 1)
        return

    for g in grapheme.graphemes(run):
        if g == "\r\n":
            yield Cell("\r", 0)
            yield Cell("\n", 0)
        elif g == "\t":
            yield Cell("   ", 3)
        else:
            yield Cell(g, 0 if g == "\n" else grapheme_width(g))
