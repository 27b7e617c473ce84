"""
Tests for the interactive shell.

The prompt is replaced with a scripted reader so nothing touches a terminal.
"""

import pytest
from loguru import logger

from marin import repl
from marin.repl import HELP_TEXT, Shell, split_first_word


def scripted(*lines):
    """Return a read_line callable that yields lines, then EOFError."""
    pending = list(lines)

    def read_line():
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read_line


def run_shell(*lines, show_tree=False):
    output = []
    shell = Shell(scripted(*lines), output.append, show_tree=show_tree)
    assert shell.run() == 0
    return output


@pytest.fixture
def restore_logging():
    yield
    logger.remove()
    logger.disable("marin")


class TestSplitFirstWord:

    def test_single_word(self):
        assert split_first_word("help") == ("help", "")

    def test_surrounding_whitespace(self):
        assert split_first_word("  exit   now please ") == ("exit", "now please ")

    def test_blank(self):
        assert split_first_word("   ") == ("", "")


class TestShell:
    """Line handling."""

    def test_help(self):
        assert run_shell("help") == [HELP_TEXT]
        assert run_shell("h") == [HELP_TEXT]

    def test_exit_stops_reading(self):
        assert run_shell("exit", "help") == []
        assert run_shell("q", "help") == []

    def test_blank_lines_are_skipped(self):
        assert run_shell("", "   ") == []

    def test_parsed_command_is_printed(self):
        output = run_shell("777000 -mention")
        assert output == [
            "Arguments:\n"
            "    IntValue(value=777000)\n"
            "Keyword Arguments:\n"
            "    mention: BoolValue(value=True)\n"
        ]

    def test_parse_error_does_not_stop_the_shell(self):
        output = run_shell("-flag: 123", "help")
        assert len(output) == 2
        assert output[0].startswith("error: ")
        assert "^" in output[0]
        assert output[1] == HELP_TEXT

    def test_tree_mode(self):
        output = run_shell("kw: 1", show_tree=True)
        assert output[0].startswith("command")
        assert "keyword" in output[0]
        assert output[1].startswith("Arguments:")

    def test_keyboard_interrupt_stops(self):
        def read_line():
            raise KeyboardInterrupt

        assert Shell(read_line, lambda text: None).run() == 0

    def test_help_is_matched_on_first_word_only(self):
        assert run_shell("helpful") != [HELP_TEXT]


class TestMain:
    """Command-line entry point."""

    def test_main_runs_until_eof(self, monkeypatch, capsys, restore_logging):
        class FakeSession:
            def prompt(self, message):
                assert message == repl.PROMPT
                raise EOFError

        monkeypatch.setattr(repl, "PromptSession", FakeSession)
        assert repl.main(["--tree", "--log-level", "error"]) == 0
        assert "help" in capsys.readouterr().out

    def test_configure_logging_enables_package_logs(self, capsys, restore_logging):
        repl.configure_logging("DEBUG")
        run_shell("1 2")
        assert "Parsing" in capsys.readouterr().err

    def test_log_level_from_environment(self, monkeypatch, capsys, restore_logging):
        monkeypatch.setenv(repl.LOG_LEVEL_ENV, "DEBUG")
        repl.configure_logging()
        run_shell("1 2")
        assert "Parsing" in capsys.readouterr().err
