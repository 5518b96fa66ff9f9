"""
Filter calls and filter chains.

A FilterChain is an entry expression followed by an ordered list of
FilterCalls, e.g. `title | upcase | truncate: 5`. Evaluation threads the
entry value through each call from left to right.
"""
import io
from typing import Any, Iterable, Sequence

from drip.drip_datatypes import Context, Expression, ValueFilter
from drip.drip_errors import EvaluationError, RenderError
from drip.drip_printer import Printer

_printer = Printer()


class FilterCall:
    """One named filter applied to an input value with evaluated arguments."""

    __slots__ = ("name", "filter", "arguments")

    def __init__(self, name: str, filter: ValueFilter, arguments: Iterable[Expression] = ()):
        self.name = name
        self.filter = filter
        self.arguments = tuple(arguments)

    def evaluate(self, context: Context, entry: Any) -> Any:
        """Applies the filter to `entry`.

        Arguments are evaluated left to right; if one fails, its error
        propagates as is and the filter is never called. A failure inside the
        filter is wrapped in an EvaluationError that records this call, its
        input and its argument values.
        """
        arguments = tuple(arg.evaluate(context) for arg in self.arguments)
        try:
            return self.filter.filter(entry, arguments)
        except Exception as e:
            raise EvaluationError.chain("Filter error", e) \
                .context_key("filter", lambda: str(self)) \
                .context_key("input", lambda: _printer.render(entry)) \
                .context_key("args", lambda: ", ".join(_printer.render(a) for a in arguments)) from e

    def __str__(self) -> str:
        if not self.arguments:
            return f"{self.name}:"
        return f"{self.name}: {', '.join(str(a) for a in self.arguments)}"

    def __repr__(self) -> str:
        return f"<FilterCall {self}>"


class FilterChain:
    """An entry expression folded through an ordered sequence of FilterCalls."""

    __slots__ = ("entry", "filters")

    def __init__(self, entry: Expression, filters: Sequence[FilterCall] = ()):
        self.entry = entry
        self.filters = tuple(filters)

    def evaluate(self, context: Context) -> Any:
        """Evaluates the entry, then applies every filter in order."""
        entry = self.entry.evaluate(context)
        for call in self.filters:
            entry = call.evaluate(context, entry)
        return entry

    def render_to(self, writer, context: Context) -> None:
        """Evaluates the chain and writes its text to `writer` in one call."""
        entry = self.evaluate(context)
        text = _printer.render(entry)
        try:
            writer.write(text)
        except Exception as e:
            raise RenderError.chain("Failed to render", e) from e

    def render(self, context: Context) -> str:
        buf = io.StringIO()
        self.render_to(buf, context)
        return buf.getvalue()

    def __str__(self) -> str:
        if not self.filters:
            return str(self.entry)
        return " | ".join([str(self.entry)] + [str(f) for f in self.filters])

    def __repr__(self) -> str:
        return f"<FilterChain {self}>"


__all__ = ["FilterCall", "FilterChain"]
