"""
The standard filter library and the registry that binds filter names.
"""
import html
import inspect
import math
import collections.abc
from datetime import date, datetime, time
from typing import Any, Dict, List
from urllib.parse import quote_plus

import pystache

from drip.drip_datatypes import Expression, Literal, ValueFilter, PyFilter
from drip.drip_errors import EvaluationError
from drip.drip_filters import FilterCall
from drip.drip_printer import Printer
from drip.drip_serialize import serialize

_printer = Printer()


def _to_str(value: Any) -> str:
    return _printer.render(value)


def _to_number(value: Any):
    if isinstance(value, bool):
        raise TypeError(f"expected a number, got {_printer.pformat(value)}")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            pass
    raise TypeError(f"expected a number, got {_printer.pformat(value)}")


def _to_int(value: Any) -> int:
    return int(_to_number(value))


def _to_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    if value is None:
        return []
    raise TypeError(f"expected an array, got {type(value).__name__}")


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, list, tuple, collections.abc.Mapping)):
        return len(value) == 0
    return False


class StdFilters:
    """Python implementations for the built-in filters.

    Every method named `_<name>` is exposed as the filter `<name>`.
    Methods receive the input value first, then the argument values.
    """

    # --- Strings ---
    def _upcase(self, input): return _to_str(input).upper()
    def _downcase(self, input): return _to_str(input).lower()
    def _capitalize(self, input): return _to_str(input).capitalize()
    def _strip(self, input): return _to_str(input).strip()
    def _lstrip(self, input): return _to_str(input).lstrip()
    def _rstrip(self, input): return _to_str(input).rstrip()
    def _append(self, input, suffix): return _to_str(input) + _to_str(suffix)
    def _prepend(self, input, prefix): return _to_str(prefix) + _to_str(input)
    def _remove(self, input, text): return _to_str(input).replace(_to_str(text), "")
    def _replace(self, input, old, new): return _to_str(input).replace(_to_str(old), _to_str(new))
    def _escape(self, input): return html.escape(_to_str(input))
    def _url_encode(self, input): return quote_plus(_to_str(input))
    def _newline_to_br(self, input): return _to_str(input).replace("\n", "<br />\n")

    def _truncate(self, input, length, trailer=""):
        text = _to_str(input)
        length = _to_int(length)
        if len(text) <= length:
            return text
        trailer = _to_str(trailer)
        keep = max(length - len(trailer), 0)
        return text[:keep] + trailer

    def _truncatewords(self, input, count, trailer=""):
        text = _to_str(input)
        words = text.split()
        count = max(_to_int(count), 1)
        if len(words) <= count:
            return text
        return " ".join(words[:count]) + _to_str(trailer)

    def _split(self, input, separator=" "):
        text = _to_str(input)
        separator = _to_str(separator)
        if separator == "":
            return list(text)
        if separator == " ":
            return text.split()
        return text.split(separator)

    def _interpolate(self, input, data=None):
        """Renders the input as a Mustache template against `data`."""
        if data is not None and not isinstance(data, collections.abc.Mapping):
            raise TypeError(f"interpolate expects a mapping, got {type(data).__name__}")
        renderer = pystache.Renderer(escape=lambda u: u)
        return renderer.render(_to_str(input), dict(data or {}))

    # --- Arrays ---
    def _join(self, input, separator=" "):
        return _to_str(separator).join(_to_str(item) for item in _to_list(input))

    def _first(self, input):
        if isinstance(input, str):
            return input[:1]
        items = _to_list(input)
        return items[0] if items else None

    def _last(self, input):
        if isinstance(input, str):
            return input[-1:]
        items = _to_list(input)
        return items[-1] if items else None

    def _size(self, input):
        if isinstance(input, (str, list, tuple, collections.abc.Mapping)):
            return len(input)
        return 0

    def _reverse(self, input): return list(reversed(_to_list(input)))

    def _sort(self, input, key=None):
        items = _to_list(input)
        if key is None:
            return sorted(items)
        return sorted(items, key=lambda item: item[key])

    def _uniq(self, input):
        out: List[Any] = []
        for item in _to_list(input):
            if item not in out:
                out.append(item)
        return out

    def _compact(self, input): return [item for item in _to_list(input) if item is not None]

    def _map(self, input, key):
        out = []
        for item in _to_list(input):
            if not isinstance(item, collections.abc.Mapping):
                raise TypeError(f"Cannot pluck field {key!r} from item of type {type(item).__name__}")
            out.append(item.get(key))
        return out

    def _slice(self, input, start, length=1):
        start = _to_int(start)
        length = _to_int(length)
        seq = input if isinstance(input, str) else _to_list(input)
        if start < 0:
            start += len(seq)
        start = max(start, 0)
        return seq[start:start + max(length, 0)]

    # --- Math ---
    def _plus(self, input, operand): return _to_number(input) + _to_number(operand)
    def _minus(self, input, operand): return _to_number(input) - _to_number(operand)
    def _times(self, input, operand): return _to_number(input) * _to_number(operand)

    def _divided_by(self, input, operand):
        a, b = _to_number(input), _to_number(operand)
        if isinstance(a, int) and isinstance(b, int):
            return a // b
        return a / b

    def _modulo(self, input, operand): return _to_number(input) % _to_number(operand)
    def _abs(self, input): return abs(_to_number(input))
    def _ceil(self, input): return math.ceil(_to_number(input))
    def _floor(self, input): return math.floor(_to_number(input))
    def _at_least(self, input, bound): return max(_to_number(input), _to_number(bound))
    def _at_most(self, input, bound): return min(_to_number(input), _to_number(bound))

    def _round(self, input, digits=0):
        digits = _to_int(digits)
        value = _to_number(input)
        if digits == 0:
            return int(round(value))
        return round(value, digits)

    # --- Misc ---
    def _default(self, input, fallback=""):
        return fallback if _is_blank(input) else input

    def _date(self, input, fmt):
        if isinstance(input, datetime):
            moment = input
        elif isinstance(input, date):
            moment = datetime.combine(input, time())
        elif isinstance(input, (int, float)) and not isinstance(input, bool):
            moment = datetime.fromtimestamp(input)
        elif isinstance(input, str) and input.strip().lower() in ("now", "today"):
            moment = datetime.now()
        elif isinstance(input, str):
            moment = datetime.fromisoformat(input.strip())
        else:
            raise TypeError(f"date expects a timestamp or ISO date string, got {type(input).__name__}")
        return moment.strftime(_to_str(fmt))

    def _json(self, input): return serialize(input, fmt="json", pretty=False)


class FilterRegistry:
    """Maps filter names to ValueFilter implementations."""

    def __init__(self):
        self._filters: Dict[str, ValueFilter] = {}

    @classmethod
    def with_stdlib(cls) -> 'FilterRegistry':
        registry = cls()
        registry.load(StdFilters())
        return registry

    def load(self, library: Any) -> None:
        """Registers every `_name` method of `library` as the filter `name`."""
        for name, member in inspect.getmembers(library):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                self.register(name[1:], member)

    def register(self, name: str, fn) -> ValueFilter:
        if not isinstance(fn, ValueFilter):
            if not callable(fn):
                raise TypeError(f"Filter {name!r} must be callable, not {type(fn).__name__}")
            fn = PyFilter(fn, name)
        self._filters[name] = fn
        return fn

    def get(self, name: str) -> ValueFilter:
        try:
            return self._filters[name]
        except KeyError:
            raise EvaluationError("Unknown filter") \
                .context_key("requested filter", name) \
                .context_key("available filters", lambda: ", ".join(self.names())) from None

    def call(self, name: str, *arguments: Any) -> FilterCall:
        """Builds a FilterCall; non-Expression arguments become Literals."""
        args = [a if isinstance(a, Expression) else Literal(a) for a in arguments]
        return FilterCall(name, self.get(name), args)

    def names(self) -> List[str]:
        return sorted(self._filters)

    def __contains__(self, name: str) -> bool:
        return name in self._filters

    def __len__(self) -> int:
        return len(self._filters)


__all__ = ["StdFilters", "FilterRegistry"]
