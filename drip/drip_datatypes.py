"""
Defines the core data types for the DRIP runtime.

This module provides the binding context, the expression types that
evaluate against it, and the filter capability invoked by filter calls.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union
import collections.abc

from drip.drip_errors import EvaluationError
from drip.drip_printer import Printer

_printer = Printer()


# =================================================================
# Binding Context
# =================================================================

class Context:
    """Variable bindings for one render, with an optional parent context.

    Lookups walk the parent chain (self → parent → ...). Writes always land
    on the context they are made on, so a child never changes its parent.
    """
    def __init__(self, bindings: Optional[Mapping[str, Any]] = None, parent: Optional['Context'] = None):
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self.parent = parent

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'Context':
        if data is not None and not isinstance(data, collections.abc.Mapping):
            raise TypeError(f"Context data must be a mapping, not {type(data).__name__}")
        return cls(data)

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Context key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __getitem__(self, key: str) -> Any:
        owner = self.find_owner(key)
        if owner is not None:
            return owner.bindings[key]
        raise KeyError(f"'{key}'")

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find_owner(key) is not None

    def find_owner(self, key: str) -> Optional['Context']:
        """Finds the Context in the lookup chain that binds key."""
        ctx = self
        while ctx is not None:
            if key in ctx.bindings:
                return ctx
            ctx = ctx.parent
        return None

    def get(self, key: str, default: Any = None) -> Any:
        owner = self.find_owner(key)
        if owner is not None:
            return owner.bindings[key]
        return default

    def push(self, bindings: Optional[Mapping[str, Any]] = None) -> 'Context':
        """Returns a child context that shadows this one."""
        return Context(bindings, parent=self)

    def names(self) -> List[str]:
        """All names visible from this context, sorted."""
        seen = set()
        ctx = self
        while ctx is not None:
            seen.update(ctx.bindings.keys())
            ctx = ctx.parent
        return sorted(seen)

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Context bindings=[{keys}]{parent_id}>"


# =================================================================
# Path Segments
# =================================================================

class PathSegment(ABC):
    """Abstract base class for all components of a variable path."""
    key: Union[str, int]


class Name(PathSegment):
    """A name segment in a path, e.g., 'user' in `user.name`."""
    def __init__(self, text: str):
        self.text = text

    @property
    def key(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Name<{self.text!r}>"

    def __eq__(self, other):
        return isinstance(other, Name) and self.text == other.text

    def __hash__(self):
        return hash(self.text)


class Index(PathSegment):
    """An index segment in a path, e.g., `[0]` or `["key"]`."""
    def __init__(self, key: Union[int, str]):
        self.key = key

    def __repr__(self) -> str:
        return f"Index({self.key!r})"

    def __eq__(self, other):
        return isinstance(other, Index) and self.key == other.key

    def __hash__(self):
        return hash(('index', self.key))


# Names that resolve against a value's shape rather than its contents.
_SEQUENCE_PROPERTIES = ("first", "last", "size")

_PATH_TOKEN = re.compile(
    r"""(?P<dot>\.)?(?P<name>[A-Za-z_][\w-]*\??)"""
    r"""|\[(?P<num>-?\d+)\]"""
    r"""|\[(?P<q>["'])(?P<str>.*?)(?P=q)\]"""
)


# =================================================================
# Expressions
# =================================================================

class Expression(ABC):
    """A value producer evaluated against a Context."""

    @abstractmethod
    def evaluate(self, context: Context) -> Any:
        raise NotImplementedError


class Literal(Expression):
    """A constant value."""
    def __init__(self, value: Any):
        self.value = value

    def evaluate(self, context: Context) -> Any:
        return self.value

    def __str__(self) -> str:
        return _printer.pformat(self.value)

    def __repr__(self) -> str:
        return f"Literal({self.value!r})"

    def __eq__(self, other):
        return isinstance(other, Literal) and self.value == other.value

    def __hash__(self):
        return hash(str(self))


class Variable(Expression):
    """A variable path such as `user.tags[0]`, resolved against a Context."""
    def __init__(self, segments: Sequence[PathSegment]):
        if not segments:
            raise ValueError("Variable must have at least one segment.")
        if not isinstance(segments[0], Name):
            raise ValueError("Variable must start with a name segment.")
        self.segments = tuple(segments)
        self._str_repr: Optional[str] = None

    @classmethod
    def parse(cls, path: str) -> 'Variable':
        """Builds a Variable from dotted path text like `a.b[0]["c d"]`."""
        segments: List[PathSegment] = []
        pos = 0
        text = path.strip()
        while pos < len(text):
            m = _PATH_TOKEN.match(text, pos)
            if m is None or (m.group('name') and segments and not m.group('dot')) \
                    or (m.group('dot') and not segments):
                raise ValueError(f"Invalid variable path: {path!r}")
            if m.group('name'):
                segments.append(Name(m.group('name')))
            elif m.group('num') is not None:
                segments.append(Index(int(m.group('num'))))
            else:
                segments.append(Index(m.group('str')))
            pos = m.end()
        if not segments:
            raise ValueError(f"Invalid variable path: {path!r}")
        return cls(segments)

    def evaluate(self, context: Context) -> Any:
        head = self.segments[0].key
        if head not in context:
            raise EvaluationError("Unknown variable") \
                .context_key("requested variable", lambda: str(self)) \
                .context_key("available variables", lambda: ", ".join(context.names()))
        value = context[head]
        for position, segment in enumerate(self.segments[1:], start=1):
            value = self._step(value, segment, position)
        return value

    def _step(self, value: Any, segment: PathSegment, position: int) -> Any:
        key = segment.key
        if isinstance(value, collections.abc.Mapping):
            if key in value:
                return value[key]
            if key == "size":
                return len(value)
        elif isinstance(value, (list, tuple)):
            if isinstance(key, int) and not isinstance(key, bool):
                if -len(value) <= key < len(value):
                    return value[key]
            elif key in _SEQUENCE_PROPERTIES:
                if key == "size":
                    return len(value)
                if not value:
                    return None
                return value[0] if key == "first" else value[-1]
        elif isinstance(value, str) and key == "size":
            return len(value)

        prefix = self.segments[:position]
        raise EvaluationError("Unknown index") \
            .context_key("variable", lambda: _format_path(prefix)) \
            .context_key("requested index", lambda: _printer.pformat(key))

    def __str__(self) -> str:
        if self._str_repr is None:
            self._str_repr = _format_path(self.segments)
        return self._str_repr

    def __repr__(self) -> str:
        return f"<Variable {self}>"

    def __eq__(self, other):
        return isinstance(other, Variable) and self.segments == other.segments

    def __hash__(self):
        return hash(self.segments)


def _format_path(segments: Iterable[PathSegment]) -> str:
    parts = []
    for i, seg in enumerate(segments):
        if isinstance(seg, Name):
            parts.append(seg.text if i == 0 else f".{seg.text}")
        elif isinstance(seg.key, int):
            parts.append(f"[{seg.key}]")
        else:
            parts.append(f'["{seg.key}"]')
    return "".join(parts)


# =================================================================
# Filter Capabilities
# =================================================================

class ValueFilter(ABC):
    """Abstract base class for a filter implementation.

    `filter` receives the input value and the already evaluated argument
    values, and returns the output value or raises.
    """

    @abstractmethod
    def filter(self, input: Any, arguments: Sequence[Any]) -> Any:
        raise NotImplementedError


class PyFilter(ValueFilter):
    """Adapts a plain Python callable `fn(input, *arguments)` into a ValueFilter."""
    def __init__(self, fn: Callable[..., Any], name: Optional[str] = None):
        self.fn = fn
        self.name = name or getattr(fn, '__name__', '<filter>').lstrip('_')

    def filter(self, input: Any, arguments: Sequence[Any]) -> Any:
        return self.fn(input, *arguments)

    def __repr__(self) -> str:
        return f"<PyFilter name={self.name!r}>"
