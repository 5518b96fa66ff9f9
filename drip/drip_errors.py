"""
Error types for the DRIP runtime.

Errors carry an ordered list of context entries (key/value pairs) and an
optional cause. Context values may be zero-argument callables; they are only
called when the context is first read or the error is formatted, so building
an error on a hot path costs nothing beyond storing the closures.
"""
from typing import Any, Callable, List, Optional, Tuple, Union

ContextValue = Union[str, Callable[[], Any]]


def _format_cause(cause: BaseException) -> str:
    if isinstance(cause, DripError):
        return str(cause)
    text = str(cause)
    name = type(cause).__name__
    return f"{name}: {text}" if text else name


class DripError(Exception):
    """Base class for all errors raised while evaluating or rendering a pipeline."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self._entries: List[Tuple[str, ContextValue]] = []
        self._context: Optional[List[Tuple[str, str]]] = None

    @classmethod
    def chain(cls, message: str, cause: BaseException) -> "DripError":
        """Wrap `cause` in a new error of this class with `message` on top."""
        return cls(message, cause=cause)

    def context_key(self, key: str, value: ContextValue) -> "DripError":
        """Attach a context entry. `value` may be a string or a thunk."""
        self._entries.append((key, value))
        self._context = None
        return self

    @property
    def context(self) -> List[Tuple[str, str]]:
        """The materialized context entries, in the order they were attached."""
        if self._context is None:
            materialized = []
            for key, value in self._entries:
                if callable(value):
                    value = value()
                materialized.append((key, str(value)))
            self._context = materialized
        return self._context

    def get_context(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for k, v in self.context:
            if k == key:
                return v
        return default

    def root_cause(self) -> BaseException:
        """Walk the cause chain down to the innermost exception."""
        err: BaseException = self
        while isinstance(err, DripError) and err.cause is not None:
            err = err.cause
        return err

    def __str__(self) -> str:
        lines = [self.message]
        if self._entries:
            lines.append("  with:")
            for key, value in self.context:
                lines.append(f"    {key}={value}")
        if self.cause is not None:
            lines.append(f"from: {_format_cause(self.cause)}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.message!r} cause={type(self.cause).__name__ if self.cause else None}>"


class EvaluationError(DripError):
    """An expression, argument, or filter failed to produce a value."""
    pass


class RenderError(DripError):
    """The rendered text could not be written to its destination."""
    pass


__all__ = [
    "DripError",
    "EvaluationError",
    "RenderError",
]
