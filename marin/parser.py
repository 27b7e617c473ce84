"""
Command-line parser built on Lark.

The grammar lives in grammar.lark next to this module. Parsing happens in two
steps: Lark recognises the line and builds a parse tree, then the tree is
walked to assemble a Command, with ValueSerializer converting each value
subtree into the value model.
"""

import threading
from pathlib import Path

from lark import Lark, Token, Tree, v_args
from lark.visitors import Transformer_NonRecursive
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)
from loguru import logger

from .errors import CommandParseError, InternalGrammarError, MarinError
from .model import (
    BoolValue,
    Command,
    FloatValue,
    IntValue,
    ListValue,
    RangeValue,
    StringValue,
    Value,
)


GRAMMAR_PATH = Path(__file__).parent / "grammar.lark"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


@v_args(inline=True)
class ValueSerializer(Transformer_NonRecursive):
    """Transform a value subtree into a Value.

    One method per rule kind. Any other rule reaching the serializer means the
    grammar and this class disagree, and raises InternalGrammarError.
    """

    def __init__(self, text: str):
        super().__init__()
        self._text = text

    def value(self, inner):
        return inner

    def range_expr(self, inner):
        return inner

    def range(self, token):
        start, end = token.split("..")
        return RangeValue(self._int64(start, token), self._int64(end, token))

    def range_to(self, token):
        return RangeValue(0, self._int64(token[2:], token))

    def list(self, *items):
        return ListValue(items)

    def bool(self, token):
        return BoolValue(token.lower() == "true")

    def float(self, token):
        return FloatValue(float(token))

    def int(self, token):
        return IntValue(self._int64(token, token))

    def string(self, text):
        return StringValue(text)

    def inner(self, token):
        return token[1:-1].replace('\\"', '"')

    def bareword(self, token):
        return str(token)

    def __default__(self, data, children, meta):
        raise InternalGrammarError(f"No conversion for rule {data!r}")

    def _int64(self, literal: str, token: Token):
        digits = literal.lstrip("-").lstrip("0")
        if len(digits) > 19 or not INT64_MIN <= int(literal) <= INT64_MAX:
            raise CommandParseError(
                self._text,
                token.start_pos,
                reason=f"integer {literal} does not fit in 64 bits",
            )
        return int(literal)


_parser = None
_parser_lock = threading.Lock()


def get_parser() -> Lark:
    """Get or create the Lark parser instance."""
    global _parser
    if _parser is None:
        with _parser_lock:
            if _parser is None:
                with open(GRAMMAR_PATH) as f:
                    grammar = f.read()
                _parser = Lark(
                    grammar,
                    start="command",
                    parser="lalr",
                    lexer="contextual",
                )
    return _parser


def translate_error(exc: UnexpectedInput, text: str) -> CommandParseError:
    """Convert a Lark rejection into a CommandParseError."""
    if isinstance(exc, UnexpectedCharacters):
        return CommandParseError(text, exc.pos_in_stream, exc.allowed or ())
    if isinstance(exc, UnexpectedToken):
        if exc.token.type == "$END":
            return CommandParseError(text, len(text), exc.expected)
        return CommandParseError(
            text,
            exc.token.start_pos,
            exc.expected,
            reason=f"unexpected {str(exc.token)!r}",
        )
    if isinstance(exc, UnexpectedEOF):
        return CommandParseError(text, len(text), exc.expected)
    return CommandParseError(text, max(exc.pos_in_stream, 0))


def parse_tree(text: str) -> Tree:
    """Recognise a command line and return the raw Lark parse tree."""
    logger.debug("Parsing {!r}", text)
    try:
        return get_parser().parse(text)
    except UnexpectedInput as e:
        error = translate_error(e, text)
        logger.debug("Rejected {!r}: {}", text, error)
        raise error from None


def assemble(tree: Tree, text: str) -> Command:
    """Build a Command from the top-level children of a parse tree."""
    serializer = ValueSerializer(text)
    args = []
    kwargs = {}
    for node in tree.children:
        if node.data == "keyword":
            key, value = node.children
            kwargs[key[:-1]] = _serialize(serializer, value)
        elif node.data == "flag":
            (name,) = node.children
            kwargs[name[1:]] = BoolValue(True)
        elif node.data == "value":
            args.append(_serialize(serializer, node))
        else:
            raise InternalGrammarError(f"Unexpected top-level rule {node.data!r}")
    return Command(args, kwargs)


def _serialize(serializer: ValueSerializer, node: Tree) -> Value:
    try:
        return serializer.transform(node)
    except VisitError as e:
        if isinstance(e.orig_exc, MarinError):
            raise e.orig_exc from None
        raise InternalGrammarError(f"Failed to convert {e.rule!r}: {e.orig_exc}") from e


def parse(text: str) -> Command:
    """Parse a command line into a Command.

    Raises CommandParseError if the line does not match the grammar. An empty
    line yields an empty Command without consulting the grammar.
    """
    if not text:
        return Command()
    return assemble(parse_tree(text), text)
