"""Incremental repaint: line splitting and minimal escape-sequence patches.

``optimized_update`` compares the text currently on screen with the text
that should be there and returns the escape sequence that turns one into the
other.  The cursor is assumed to sit right after the old text, and is left
right after the new text, so plain appends can follow a patch.

Rows are terminal rows: a row ends at a newline or when the next visible
cell no longer fits in ``columns``.  Only relative motions are used, so the
block may start anywhere on the screen.  Rows scrolled out of the viewport
are not clipped: ``rows`` is carried for symmetry and ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

from tasklog.utils import AnsiState, Escape, iter_tokens, strip_ansi

__all__ = [
    "StreamSize",
    "stream_size",
    "split_new_lines",
    "count_new_lines",
    "optimized_update",
]

_SAVE_CURSOR = "\x1b[s"
_RESTORE_CURSOR = "\x1b[u"
_ERASE_LINE_TAIL = "\x1b[K"
_ERASE_SCREEN_TAIL = "\x1b[J"
_DEFAULT_BACKGROUND = "\x1b[49m"


@dataclass(frozen=True)
class StreamSize:
    """Viewport size of an output stream."""

    columns: int
    rows: int


def stream_size(columns: int, rows: int) -> StreamSize:
    return StreamSize(columns, rows)


# ---------------------------------------------------------------------------
# Line splitting
# ---------------------------------------------------------------------------


def split_new_lines(text: str, size: StreamSize) -> list[str]:
    """Split *text* into terminal rows for a viewport of *size*.

    Escape sequences are zero-width and stay in the row where they occur.
    A row keeps its terminating newline.  The last element is whatever
    follows the final row break, possibly ``""``, so the result is never
    empty and the cursor always ends on the last row.
    """
    columns = size.columns
    result: list[str] = []
    line: list[str] = []
    used = 0

    for token in iter_tokens(text):
        if isinstance(token, Escape):
            line.append(token.code)
            continue

        if token.text == "\n":
            line.append("\n")
            result.append("".join(line))
            line = []
            used = 0
            continue

        if columns > 0 and used > 0 and used + token.width > columns:
            result.append("".join(line))
            line = []
            used = 0

        line.append(token.text)
        used += token.width

    result.append("".join(line))
    return result


def count_new_lines(text: str, size: StreamSize) -> int:
    """Return the number of row breaks in *text* (rows minus one)."""
    return len(split_new_lines(text, size)) - 1


# ---------------------------------------------------------------------------
# Parsed rows
# ---------------------------------------------------------------------------


class _Cell(NamedTuple):
    text: str
    width: int
    state: AnsiState
    # Style before the escape tokens that directly precede this cell.
    before: AnsiState
    tokens: tuple[str, ...]


class _Row(NamedTuple):
    cells: dict[int, _Cell]  # keyed by starting column
    width: int
    newline: bool
    start: AnsiState
    end: AnsiState


def _parse_rows(lines: list[str]) -> list[_Row]:
    rows: list[_Row] = []
    state = AnsiState()
    for line in lines:
        start = state.copy()
        cells: dict[int, _Cell] = {}
        pending: list[str] = []
        before = state.copy()
        col = 0
        newline = False
        for token in iter_tokens(line):
            if isinstance(token, Escape):
                if not pending:
                    before = state.copy()
                pending.append(token.code)
                state.process(token.code)
                continue
            if token.text == "\n":
                newline = True
                continue
            snapshot = state.copy()
            cells[col] = _Cell(
                token.text,
                token.width,
                snapshot,
                before if pending else snapshot,
                tuple(pending),
            )
            pending = []
            col += token.width
        rows.append(_Row(cells, col, newline, start, state.copy()))
    return rows


# ---------------------------------------------------------------------------
# Patch construction
# ---------------------------------------------------------------------------


class _Patcher:
    """Accumulates patch output while tracking the terminal's SGR pen."""

    def __init__(self, pen: AnsiState, columns: int) -> None:
        self.pen = pen
        self.columns = columns

    def sync(self, out: list[str], target: AnsiState) -> None:
        if self.pen != target:
            out.append(target.sgr())
            self.pen = target

    def _sync_cell(self, out: list[str], cell: _Cell) -> None:
        if self.pen == cell.state:
            return
        if cell.tokens and self.pen == cell.before:
            out.extend(cell.tokens)
        else:
            out.append(cell.state.sgr())
        self.pen = cell.state

    def erase(self, out: list[str], code: str) -> None:
        # Terminals fill erased cells with the current background.
        if self.pen.background is not None:
            out.append(_DEFAULT_BACKGROUND)
            pen = self.pen.copy()
            pen.background = None
            self.pen = pen
        out.append(code)

    def row(
        self,
        old: _Row,
        new: _Row,
        *,
        to_end: bool,
        always: bool = False,
        erase: bool = True,
    ) -> str:
        """Return the patch turning row *old* into row *new*.

        The cursor must be at column 0 of the row.  With *to_end* the cursor
        is left after the new row's last cell whenever anything was written
        (or unconditionally with *always*); otherwise it stays after the last
        changed cell.  With *erase* a longer old row is cut with ``ESC[K``.
        An empty string means the row needs no change.
        """
        out: list[str] = []
        goright = 0
        changed = False
        full = self.columns > 0 and new.width >= self.columns
        last_col = max(new.cells) if new.cells else -1

        for col, cell in new.cells.items():
            old_cell = old.cells.get(col)
            same = (
                old_cell is not None
                and old_cell.text == cell.text
                and old_cell.state == cell.state
            )
            # A full row only gets the deferred wrap by writing its last cell.
            if same and not (to_end and full and col == last_col):
                goright += cell.width
                continue
            if goright:
                out.append(f"\x1b[{goright}C")
                goright = 0
            self._sync_cell(out, cell)
            out.append(cell.text)
            changed = True

        if erase and old.width > new.width:
            if goright:
                out.append(f"\x1b[{goright}C")
                goright = 0
            self.erase(out, _ERASE_LINE_TAIL)
            changed = True

        if goright and to_end and (changed or always):
            out.append(f"\x1b[{goright}C")

        return "".join(out)


def optimized_update(text_old: str, text_new: str, size: StreamSize) -> str:
    """Return the escape sequence that repaints *text_old* as *text_new*.

    Rows that are unchanged cost nothing; a changed row is reached with a
    single cursor-up motion, unchanged runs inside it are skipped with a
    forward motion, and only differing cells are rewritten.  Patches of
    rows above the cursor row are wrapped in save/restore so that output
    continues at the end of the text.
    """
    if text_new.startswith(text_old):
        return text_new[len(text_old):]
    if not strip_ansi(text_old):
        return text_new
    if not strip_ansi(text_new):
        return ""

    lines_old = split_new_lines(text_old, size)
    lines_new = split_new_lines(text_new, size)
    rows_old = _parse_rows(lines_old)
    rows_new = _parse_rows(lines_new)

    last = len(lines_old) - 1
    last_new = len(lines_new) - 1
    final = min(last, last_new)

    patcher = _Patcher(rows_old[last].end, size.columns)
    saved_pen = patcher.pen
    out: list[str] = []

    # Rows above the final row, walked bottom-up.
    upper: list[str] = []
    cursor = last
    for row_i in range(final - 1, -1, -1):
        old, new = rows_old[row_i], rows_new[row_i]
        if lines_old[row_i] == lines_new[row_i] and old.start == new.start:
            continue
        patch = patcher.row(old, new, to_end=False)
        if not patch:
            continue
        upper.append(f"\x1b[{cursor - row_i}F")
        upper.append(patch)
        cursor = row_i

    if upper:
        patcher.sync(upper, saved_pen)
        out.append(_SAVE_CURSOR)
        out.extend(upper)
        out.append(_RESTORE_CURSOR)

    if last_new < last:
        _shrink(out, patcher, rows_old, rows_new, last, last_new)
        return "".join(out)

    old, new = rows_old[last], rows_new[last]
    if lines_new[last].startswith(lines_old[last]) and old.start == new.start:
        # The cursor row only grew: continue writing where the old text ended.
        patcher.sync(out, old.end)
        out.append(lines_new[last][len(lines_old[last]):])
    else:
        patch = patcher.row(old, new, to_end=True)
        if patch:
            out.append("\r")
            out.append(patch)
        patcher.sync(out, new.end)
        if new.newline:
            out.append("\n")

    out.extend(lines_new[last + 1:])
    return "".join(out)


def _shrink(
    out: list[str],
    patcher: _Patcher,
    rows_old: list[_Row],
    rows_new: list[_Row],
    last: int,
    last_new: int,
) -> None:
    """Patch the last surviving row and erase every row below it."""
    old, new = rows_old[last_new], rows_new[last_new]
    full = patcher.columns > 0 and new.width >= patcher.columns

    if full:
        # Erasing at a pending wrap would eat the last cell: clear the rows
        # below first, then come back up.
        gap = last - last_new - 1
        out.append(f"\x1b[{gap}F" if gap else "\r")
        patcher.erase(out, _ERASE_SCREEN_TAIL)
        out.append("\x1b[1F")
        out.append(patcher.row(old, new, to_end=True, always=True, erase=False))
    else:
        out.append(f"\x1b[{last - last_new}F")
        out.append(patcher.row(old, new, to_end=True, always=True, erase=False))
        patcher.erase(out, _ERASE_SCREEN_TAIL)

    patcher.sync(out, new.end)

