"""
Loading and running filter chains.

A chain description is plain data (as read from YAML or JSON):

    entry: {var: page.title}
    filters:
      - upcase
      - {name: truncate, args: [5]}

Literal values stand for themselves; `{var: <path>}` refers to a variable.
"""
import os
import sys
import collections.abc
from dataclasses import dataclass
from typing import Any, Literal as TypingLiteral, Mapping, Optional

from drip.drip_datatypes import Context, Expression, Literal, Variable
from drip.drip_errors import DripError, EvaluationError
from drip.drip_filters import FilterCall, FilterChain
from drip.drip_printer import Printer
from drip.drip_stdlib import FilterRegistry


@dataclass
class ExecutionResult:
    """The structured result of running a chain."""
    status: TypingLiteral['success', 'error']
    value: Any = None
    output: Optional[str] = None
    error_message: Optional[str] = None
    error: Optional[DripError] = None

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return f"Error: {self.error_message or 'Unknown error'}"


def _load_expression(node: Any) -> Expression:
    if isinstance(node, collections.abc.Mapping) and set(node) == {'var'}:
        path = node['var']
        if not isinstance(path, str):
            raise ValueError(f"Variable path must be a string, not {type(path).__name__}")
        return Variable.parse(path)
    return Literal(node)


def _load_call(item: Any, registry: FilterRegistry) -> FilterCall:
    match item:
        case str() as name:
            return registry.call(name)
        case {'name': str() as name, **rest}:
            args = rest.get('args')
            if args is None:
                args = []
            elif not isinstance(args, list):
                args = [args]
            return registry.call(name, *[_load_expression(a) for a in args])
        case _:
            raise ValueError(f"Invalid filter description: {item!r}")


def load_chain(description: Mapping[str, Any], registry: FilterRegistry) -> FilterChain:
    """Builds a FilterChain from a description mapping, resolving filters in `registry`."""
    if not isinstance(description, collections.abc.Mapping):
        raise ValueError(f"Chain description must be a mapping, not {type(description).__name__}")
    if 'entry' not in description:
        raise ValueError("Chain description requires an 'entry'")
    entry = _load_expression(description['entry'])
    filters = description.get('filters') or []
    if not isinstance(filters, list):
        raise ValueError("'filters' must be a list")
    return FilterChain(entry, [_load_call(item, registry) for item in filters])


class PipelineRunner:
    """Builds FilterChains from descriptions and evaluates them against data."""

    def __init__(self, registry: Optional[FilterRegistry] = None):
        self.registry = registry if registry is not None else FilterRegistry.with_stdlib()
        self.printer = Printer()

    def _dbg(self, *parts):
        # Callable parts are only called when tracing is on
        if os.environ.get("DRIP_DEBUG"):
            print("[DBG]", *[p() if callable(p) else p for p in parts], file=sys.stderr)

    def load(self, description: Mapping[str, Any]) -> FilterChain:
        chain = load_chain(description, self.registry)
        self._dbg("load", chain)
        return chain

    def run(self, chain: FilterChain, data: Any = None) -> ExecutionResult:
        """Evaluates `chain` against `data` (a Context or a mapping).

        Evaluation failures and non-mapping data are reported in the result.
        """
        try:
            context = data if isinstance(data, Context) else Context.from_mapping(data)
        except TypeError as e:
            err = EvaluationError.chain("Invalid context data", e)
            return ExecutionResult(status='error', error_message=str(err), error=err)
        self._dbg("run", chain, "names", context.names)
        try:
            value = chain.evaluate(context)
        except DripError as e:
            self._dbg("error", repr(e))
            return ExecutionResult(status='error', error_message=str(e), error=e)
        return ExecutionResult(status='success', value=value, output=self.printer.render(value))


__all__ = ["ExecutionResult", "PipelineRunner", "load_chain"]
