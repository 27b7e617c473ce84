"""
Interactive shell for trying out the command parser.

Reads lines from a prompt, answers "help" and "exit" itself and prints the
parsed form of everything else.

Usage:
    marin [--tree] [--log-level LEVEL]
    python -m marin [--tree] [--log-level LEVEL]
"""

import argparse
import os
import sys
from typing import Callable, Optional, Tuple

from loguru import logger
from prompt_toolkit import PromptSession

from .errors import CommandParseError
from .parser import assemble, parse_tree

PROMPT = "marin> "

# Environment variable consulted when --log-level is not given
LOG_LEVEL_ENV = "MARIN_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

LOG_FORMAT = "{time:HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"

HELP_COMMANDS = {"h", "help"}
EXIT_COMMANDS = {"q", "exit"}

INTRO = """\
Enter "help" for examples.
Press Ctrl-D or enter "exit" to exit.
"""

HELP_TEXT = """\
Examples:
  Positional Arguments
    1 2 3
    arg1 arg2 arg3
  Keyword Arguments
    kw: 1
    keywordarg: True
  Flags
    -flag1 -flag2
  Quoted Strings
    kw: "string with spaces"
    "positional argument with spaces"
  Ranges
    range: 1..10
    1..10
    ..10
    ids: -10..20
  Lists
    vals: ["val1", "val2"]
    vals: [1, 2, 3]
    [1,2,3]
"""


def configure_logging(level: Optional[str] = None) -> None:
    """Send log records to stderr and enable the package's loggers."""
    level = (level or os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.enable("marin")


def split_first_word(line: str) -> Tuple[str, str]:
    """Split a line into its first word and the (left-stripped) rest."""
    parts = line.split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


class Shell:
    """Line-oriented loop around the parser.

    read_line returns the next input line and raises EOFError (or
    KeyboardInterrupt) when the user is done. write receives each block of
    output text.
    """

    def __init__(
        self,
        read_line: Callable[[], str],
        write: Callable[[str], None] = print,
        show_tree: bool = False,
    ):
        self.read_line = read_line
        self.write = write
        self.show_tree = show_tree

    def handle(self, line: str) -> bool:
        """Process one line. Returns False when the shell should stop."""
        command_name, _ = split_first_word(line)

        if command_name in HELP_COMMANDS:
            self.write(HELP_TEXT)
            return True
        if command_name in EXIT_COMMANDS:
            logger.debug("Exit requested with {!r}", command_name)
            return False
        if not command_name:
            return True

        try:
            tree = parse_tree(line)
            command = assemble(tree, line)
        except CommandParseError as e:
            self.write(f"error: {e}\n{e.context()}\n")
            return True

        if self.show_tree:
            self.write(tree.pretty())
        self.write(f"{command}\n")
        return True

    def run(self) -> int:
        """Read and handle lines until exit or end of input."""
        while True:
            try:
                line = self.read_line()
            except (KeyboardInterrupt, EOFError):
                break
            if not self.handle(line):
                break
        return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Interactively parse command lines and show the result."
    )
    parser.add_argument(
        "--tree",
        action="store_true",
        help="Also print the raw parse tree of each line"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Log level for stderr output (default: ${LOG_LEVEL_ENV} or {DEFAULT_LOG_LEVEL})"
    )

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    session = PromptSession()
    print(INTRO)
    shell = Shell(lambda: session.prompt(PROMPT), show_tree=args.tree)
    return shell.run()


if __name__ == "__main__":
    sys.exit(main())
