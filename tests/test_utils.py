"""Tests for tasklog.utils -- ANSI tokens, SGR state and cell widths."""

from __future__ import annotations

from tasklog.utils import (
    AnsiState,
    Cell,
    Escape,
    ansi_state_at,
    extract_ansi_code,
    grapheme_width,
    iter_tokens,
    strip_ansi,
)


def _width(text: str) -> int:
    return sum(t.width for t in iter_tokens(text) if isinstance(t, Cell))


# ---------------------------------------------------------------------------
# Cell widths / strip_ansi
# ---------------------------------------------------------------------------


class TestCellWidths:
    """Measure the columns a styled string occupies."""

    def test_plain_ascii(self) -> None:
        assert _width("hello") == 5

    def test_empty_string(self) -> None:
        assert _width("") == 0

    def test_ansi_codes_do_not_count(self) -> None:
        assert _width("\x1b[1m\x1b[31mabc\x1b[0m") == 3

    def test_wide_cjk_characters_count_as_two(self) -> None:
        assert _width("A世B") == 4

    def test_tab_counts_as_three_spaces(self) -> None:
        assert _width("\u00e9\t") == 4

    def test_osc8_hyperlink_does_not_count(self) -> None:
        text = "\x1b]8;;https://example.com\x07link\x1b]8;;\x07"
        assert _width(text) == 4

    def test_combining_mark_is_zero_width(self) -> None:
        assert _width("e\u0301") == 1


class TestGraphemeWidth:
    def test_control_characters(self) -> None:
        assert grapheme_width("\x07") == 0
        assert grapheme_width("") == 0

    def test_emoji_sequences_are_wide(self) -> None:
        assert grapheme_width("\u2764\ufe0f") == 2
        assert grapheme_width("\U0001f1fa\U0001f1f8") == 2

    def test_repeated_lookups_agree(self) -> None:
        assert grapheme_width("世") == grapheme_width("世") == 2


class TestStripAnsi:
    def test_removes_sgr_and_cursor_codes(self) -> None:
        assert strip_ansi("\x1b[31mred\x1b[39m\x1b[2K\x1b[?25l") == "red"

    def test_keeps_newlines(self) -> None:
        assert strip_ansi("a\n\x1b[1mb\x1b[22m\n") == "a\nb\n"


# ---------------------------------------------------------------------------
# extract_ansi_code
# ---------------------------------------------------------------------------


class TestExtractAnsiCode:
    def test_sgr(self) -> None:
        assert extract_ansi_code("x\x1b[1;31my", 1) == ("\x1b[1;31m", 7)

    def test_private_mode(self) -> None:
        assert extract_ansi_code("\x1b[?25l", 0) == ("\x1b[?25l", 6)

    def test_not_an_escape(self) -> None:
        assert extract_ansi_code("abc", 0) is None

    def test_incomplete_csi(self) -> None:
        assert extract_ansi_code("\x1b[31", 0) is None

    def test_lone_escape(self) -> None:
        assert extract_ansi_code("\x1b", 0) is None

    def test_osc_with_st_terminator(self) -> None:
        text = "\x1b]0;title\x1b\\"
        assert extract_ansi_code(text, 0) == (text, len(text))


# ---------------------------------------------------------------------------
# AnsiState
# ---------------------------------------------------------------------------


class TestAnsiState:
    """Replay SGR codes into a comparable style record."""

    def test_default_has_no_codes(self) -> None:
        assert not AnsiState().has_active_codes()

    def test_bold_and_color(self) -> None:
        state = AnsiState()
        state.process("\x1b[1;31m")
        assert state.bold == "\x1b[1m"
        assert state.color == "\x1b[31m"

    def test_reset_clears_everything(self) -> None:
        state = AnsiState()
        state.process("\x1b[1;3;4;5;7;9;32;44m")
        state.process("\x1b[0m")
        assert state == AnsiState()

    def test_empty_params_reset(self) -> None:
        state = AnsiState()
        state.process("\x1b[1m")
        state.process("\x1b[m")
        assert state == AnsiState()

    def test_paired_off_codes(self) -> None:
        state = AnsiState()
        state.process("\x1b[1;3;4;5;7;9m")
        state.process("\x1b[22;23;24;25;27;29m")
        assert state == AnsiState()

    def test_bright_colors(self) -> None:
        state = AnsiState()
        state.process("\x1b[90;103m")
        assert state.color == "\x1b[90m"
        assert state.background == "\x1b[103m"

    def test_default_color_codes(self) -> None:
        state = AnsiState()
        state.process("\x1b[31;41m")
        state.process("\x1b[39;49m")
        assert state.color is None
        assert state.background is None

    def test_extended_colors(self) -> None:
        state = AnsiState()
        state.process("\x1b[38;5;208;48;2;1;2;3m")
        assert state.color == "\x1b[38;5;208m"
        assert state.background == "\x1b[48;2;1;2;3m"

    def test_unknown_codes_ignored(self) -> None:
        state = AnsiState()
        state.process("\x1b[1;73m")
        assert state.bold == "\x1b[1m"

    def test_non_sgr_ignored(self) -> None:
        state = AnsiState()
        state.process("\x1b[2K")
        assert state == AnsiState()

    def test_equality_distinguishes_styles(self) -> None:
        red = AnsiState(color="\x1b[31m")
        green = AnsiState(color="\x1b[32m")
        assert red != green
        assert red == AnsiState(color="\x1b[31m")

    def test_sgr_sets_exact_state(self) -> None:
        state = AnsiState(bold="\x1b[1m", color="\x1b[32m")
        assert state.sgr() == "\x1b[0m\x1b[1m\x1b[32m"

    def test_copy_is_independent(self) -> None:
        state = AnsiState(bold="\x1b[1m")
        clone = state.copy()
        clone.process("\x1b[0m")
        assert state.bold == "\x1b[1m"

    def test_ansi_state_at(self) -> None:
        state = ansi_state_at("\x1b[1mbold\x1b[31m red\x1b[22m")
        assert state == AnsiState(color="\x1b[31m")


# ---------------------------------------------------------------------------
# iter_tokens
# ---------------------------------------------------------------------------


class TestIterTokens:
    def test_ascii_with_escapes(self) -> None:
        tokens = list(iter_tokens("a\x1b[1mb\n"))
        assert tokens == [
            Cell("a", 1),
            Escape("\x1b[1m"),
            Cell("b", 1),
            Cell("\n", 0),
        ]

    def test_wide_character(self) -> None:
        assert list(iter_tokens("世")) == [Cell("世", 2)]

    def test_crlf_splits(self) -> None:
        tokens = list(iter_tokens("\u00e9\r\n"))
        assert tokens[1:] == [Cell("\r", 0), Cell("\n", 0)]

    def test_unterminated_escape_is_text(self) -> None:
        tokens = list(iter_tokens("\x1b[31"))
        assert all(isinstance(t, Cell) for t in tokens)
