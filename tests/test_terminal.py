"""Tests for tasklog.terminal -- the process-stream terminal."""

from __future__ import annotations

import io
from pathlib import Path

from tasklog.terminal import ProcessTerminal


class BrokenStream(io.StringIO):
    def write(self, data: str) -> int:
        raise BrokenPipeError


class TtyStream(io.StringIO):
    def isatty(self) -> bool:
        return True


class TestProcessTerminal:
    def test_write_goes_to_stream(self) -> None:
        stream = io.StringIO()
        ProcessTerminal(stream).write("hello")
        assert stream.getvalue() == "hello"

    def test_cursor_visibility(self) -> None:
        stream = io.StringIO()
        term = ProcessTerminal(stream)
        term.hide_cursor()
        term.show_cursor()
        assert stream.getvalue() == "\x1b[?25l\x1b[?25h"

    def test_size_fallback_without_tty(self) -> None:
        term = ProcessTerminal(io.StringIO())
        assert (term.columns, term.rows) == (80, 24)

    def test_pipe_is_not_interactive(self) -> None:
        assert not ProcessTerminal(io.StringIO()).is_interactive()

    def test_tty_is_interactive_outside_ci(self, monkeypatch) -> None:
        monkeypatch.delenv("CI", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert ProcessTerminal(TtyStream()).is_interactive()

    def test_ci_and_dumb_terminals_are_not_interactive(self, monkeypatch) -> None:
        monkeypatch.setenv("TERM", "xterm")
        monkeypatch.setenv("CI", "true")
        assert not ProcessTerminal(TtyStream()).is_interactive()
        monkeypatch.delenv("CI")
        monkeypatch.setenv("TERM", "dumb")
        assert not ProcessTerminal(TtyStream()).is_interactive()

    def test_broken_pipe_is_swallowed(self) -> None:
        ProcessTerminal(BrokenStream()).write("lost")

    def test_write_log_mirrors_output(self, tmp_path: Path) -> None:
        log_path = tmp_path / "writes.log"
        term = ProcessTerminal(io.StringIO(), write_log_path=str(log_path))
        term.write("a")
        term.write("b\n")
        assert log_path.read_text(encoding="utf-8") == "ab\n"
