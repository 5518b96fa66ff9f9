"""
Textual forms for DRIP values.

`render` produces the canonical text written into template output.
`pformat` produces the display form used when printing expressions, filter
calls and diagnostics.
"""
import collections.abc


class Printer:
    """Formats DRIP values for output and for display."""

    def __init__(self):
        self._render_handlers = self._create_render_handlers()
        self._display_handlers = self._create_display_handlers()

    def render(self, obj) -> str:
        """Canonical text of a value, as written to a sink."""
        handler = self._get_handler(obj, self._render_handlers, self._render_mapping, self._render_sequence)
        return handler(obj)

    def pformat(self, obj) -> str:
        """Display form of a value, as used in expression and call displays."""
        handler = self._get_handler(obj, self._display_handlers, self._pformat_mapping, self._pformat_sequence)
        return handler(obj)

    def _get_handler(self, obj, handlers, mapping_handler, sequence_handler):
        obj_type = type(obj)
        if obj_type in handlers:
            return handlers[obj_type]
        # bool is a subclass of int, so only exact types are in the table
        if isinstance(obj, bool):
            return handlers[bool]
        if isinstance(obj, str):
            return handlers[str]
        if isinstance(obj, collections.abc.Mapping):
            return mapping_handler
        if isinstance(obj, (list, tuple)):
            return sequence_handler
        return str

    def _create_render_handlers(self):
        return {
            str: self._render_str,
            int: self._render_primitive,
            float: self._render_primitive,
            bool: self._render_bool,
            type(None): self._render_none,
            list: self._render_sequence,
            tuple: self._render_sequence,
            dict: self._render_mapping,
        }

    def _create_display_handlers(self):
        return {
            str: self._render_str,
            int: self._render_primitive,
            float: self._render_primitive,
            bool: self._render_bool,
            type(None): self._pformat_none,
            list: self._pformat_sequence,
            tuple: self._pformat_sequence,
            dict: self._pformat_mapping,
        }

    def _render_str(self, obj):
        return str(obj)

    def _render_primitive(self, obj):
        return str(obj)

    def _render_bool(self, obj):
        return 'true' if obj else 'false'

    def _render_none(self, obj):
        return ''

    def _render_sequence(self, obj):
        return "".join(self.render(item) for item in obj)

    def _render_mapping(self, obj):
        return "".join(f"{key}{self.render(value)}" for key, value in obj.items())

    def _pformat_none(self, obj):
        return 'nil'

    def _pformat_sequence(self, obj):
        return "[" + ", ".join(self.pformat(item) for item in obj) + "]"

    def _pformat_mapping(self, obj):
        items = ", ".join(f"{key}: {self.pformat(value)}" for key, value in obj.items())
        return "{" + items + "}"
