"""Terminal abstraction for the task display.

Provides a ``Terminal`` protocol and a concrete ``ProcessTerminal``
implementation that writes to a text stream (``sys.stdout`` by default),
reports the viewport size, and probes whether the stream is an interactive
terminal that understands cursor motion.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Protocol, TextIO

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for terminal output operations."""

    def write(self, data: str) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def is_interactive(self) -> bool: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Terminal backed by a process output stream.

    Parameters
    ----------
    stream:
        Text stream to write to.  Defaults to ``sys.stdout`` resolved at
        write time, so that stream replacement (e.g. by pytest's capture)
        is honoured.
    write_log_path:
        When set, every write is also appended to this file.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        write_log_path: str = "",
    ) -> None:
        self._stream = stream
        self._write_log_path = write_log_path

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(self.stream.fileno()).columns
        except (AttributeError, ValueError, OSError):
            return 80

    @property
    def rows(self) -> int:
        try:
            return os.get_terminal_size(self.stream.fileno()).lines
        except (AttributeError, ValueError, OSError):
            return 24

    def is_interactive(self) -> bool:
        """Return ``True`` for a TTY that is neither dumb nor running in CI."""
        try:
            is_tty = self.stream.isatty()
        except (AttributeError, ValueError):
            return False
        if not is_tty:
            return False
        if os.environ.get("TERM") == "dumb":
            return False
        return "CI" not in os.environ

    # -- write --------------------------------------------------------------

    def write(self, data: str) -> None:
        """Write data to the stream and optionally to the write log."""
        try:
            self.stream.write(data)
            self.stream.flush()
        except OSError as exc:
            log.debug("terminal write failed: %s", exc)

        if self._write_log_path:
            try:
                with open(self._write_log_path, "a", encoding="utf-8") as f:
                    f.write(data)
            except OSError as exc:
                log.debug("write log %s unavailable: %s", self._write_log_path, exc)

    # -- cursor manipulation ------------------------------------------------

    def hide_cursor(self) -> None:
        self.write(_HIDE_CURSOR)

    def show_cursor(self) -> None:
        self.write(_SHOW_CURSOR)
