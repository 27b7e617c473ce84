"""
Value model for parsed command lines.

Every parsed value is one of the frozen dataclasses below; a parsed line is a
Command holding positional and keyword values.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple, Union


@dataclass(frozen=True)
class StringValue:
    """Quoted or bare string."""
    value: str

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class BoolValue:
    """Boolean literal, or the value of a flag."""
    value: bool

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True)
class IntValue:
    """Signed 64-bit integer."""
    value: int

    def to_python(self) -> int:
        return self.value


@dataclass(frozen=True)
class FloatValue:
    """Double precision float."""
    value: float

    def to_python(self) -> float:
        return self.value


@dataclass(frozen=True)
class ListValue:
    """Ordered, possibly nested, list of values."""
    items: Tuple['Value', ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def to_python(self) -> list:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class RangeValue:
    """Half-open integer interval [start, end). Inverted ranges are kept."""
    start: int
    end: int

    def to_python(self) -> range:
        return range(self.start, self.end)


Value = Union[StringValue, BoolValue, IntValue, FloatValue, ListValue, RangeValue]

VALUE_TYPES = (StringValue, BoolValue, IntValue, FloatValue, ListValue, RangeValue)


def coerce(obj: Any) -> Value:
    """Build a Value from a native Python object.

    Values are returned unchanged. bool is checked before int since it is a
    subclass of it.
    """
    if isinstance(obj, VALUE_TYPES):
        return obj
    if isinstance(obj, str):
        return StringValue(obj)
    if isinstance(obj, bool):
        return BoolValue(obj)
    if isinstance(obj, int):
        return IntValue(obj)
    if isinstance(obj, float):
        return FloatValue(obj)
    if isinstance(obj, (list, tuple)):
        return ListValue(tuple(coerce(item) for item in obj))
    if isinstance(obj, range):
        if obj.step != 1:
            raise TypeError(f"Only ranges with step 1 can be converted, got {obj!r}")
        return RangeValue(obj.start, obj.stop)
    raise TypeError(f"Cannot convert {type(obj).__name__} to a command value")


@dataclass(frozen=True)
class Command:
    """A parsed command line.

    args keeps positional values in order of appearance; kwargs maps keyword
    and flag names to their values, the last occurrence of a name winning.
    """
    args: Tuple[Value, ...] = ()
    kwargs: Mapping[str, Value] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "kwargs", MappingProxyType(dict(self.kwargs)))

    def __hash__(self):
        return hash((self.args, frozenset(self.kwargs.items())))

    def to_python(self) -> Tuple[List[Any], Dict[str, Any]]:
        """Return (args, kwargs) as native Python objects."""
        args = [value.to_python() for value in self.args]
        kwargs = {key: value.to_python() for key, value in self.kwargs.items()}
        return args, kwargs

    def __str__(self) -> str:
        lines = ["Arguments:"]
        lines.extend(f"    {value!r}" for value in self.args)
        lines.append("Keyword Arguments:")
        lines.extend(f"    {key}: {value!r}" for key, value in self.kwargs.items())
        return "\n".join(lines)
