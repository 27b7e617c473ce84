"""
Exceptions raised by the command parser.
"""

from typing import FrozenSet, Iterable, Optional


# Human-readable names for grammar terminals, used in error messages only.
TERMINAL_DESCRIPTIONS = {
    "KEY": "keyword",
    "FLAG": "flag",
    "RANGE": "range",
    "RANGE_TO": "range",
    "_LSQB": "'['",
    "_RSQB": "']'",
    "_COMMA": "','",
    "BOOL": "boolean",
    "FLOAT": "float",
    "INT": "integer",
    "QUOTED": "quoted string",
    "BAREWORD": "bareword",
    "$END": "end of input",
}


class MarinError(Exception):
    """Base class for all errors raised by this package."""


class CommandParseError(MarinError):
    """Raised when a command line does not match the grammar.

    Attributes:
        text: The input that was being parsed.
        position: Byte offset (UTF-8) of the offending input.
        line: 1-based line of the offending input.
        column: 1-based column (in characters) of the offending input.
        expected: Names of the grammar terminals acceptable at that position.
        reason: Short description of what was found there.
    """

    def __init__(
        self,
        text: str,
        char_pos: int,
        expected: Iterable[str] = (),
        reason: Optional[str] = None,
    ):
        self.text = text
        self.char_pos = char_pos
        self.position = len(text[:char_pos].encode("utf-8", errors="surrogatepass"))
        self.line = text.count("\n", 0, char_pos) + 1
        self.column = char_pos - (text.rfind("\n", 0, char_pos) + 1) + 1
        self.expected: FrozenSet[str] = frozenset(expected)
        if reason is None:
            reason = "unexpected end of input" if char_pos >= len(text) else (
                f"unexpected {text[char_pos]!r}"
            )
        self.reason = reason
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        message = f"{self.reason} at byte {self.position}"
        if self.expected:
            message += f"; expected {', '.join(self.describe_expected())}"
        return message

    def describe_expected(self) -> list:
        """Return the expected set as sorted, de-duplicated readable names."""
        return sorted({TERMINAL_DESCRIPTIONS.get(name, name) for name in self.expected})

    def context(self, span: int = 20) -> str:
        """Return the offending line with a caret under the error position."""
        start = self.text.rfind("\n", 0, self.char_pos) + 1
        end = self.text.find("\n", self.char_pos)
        if end == -1:
            end = len(self.text)
        left = max(start, self.char_pos - span)
        right = min(end, self.char_pos + span)
        snippet = self.text[left:right]
        return f"{snippet}\n{' ' * (self.char_pos - left)}^"


class InternalGrammarError(MarinError):
    """Raised when the parse tree holds a node the interpreter cannot convert.

    This signals that the grammar and the tree interpreter are out of sync;
    it is never caused by user input.
    """
