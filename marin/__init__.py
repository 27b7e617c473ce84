"""
Parse shell-style command lines into positional and keyword values.

    >>> from marin import parse
    >>> command = parse('-overwrite offset: 30m "ban reason"')
    >>> command.to_python()
    (['ban reason'], {'overwrite': True, 'offset': '30m'})
"""

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
    coerce,
)
from .parser import parse, parse_tree

# Library logging stays silent until an application enables it.
logger.disable(__name__)

__all__ = [
    "parse",
    "parse_tree",
    "Command",
    "Value",
    "StringValue",
    "BoolValue",
    "IntValue",
    "FloatValue",
    "ListValue",
    "RangeValue",
    "coerce",
    "MarinError",
    "CommandParseError",
    "InternalGrammarError",
]
