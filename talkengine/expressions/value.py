"""
Value - wrapper giving script semantics to plain Python objects.

Variables hold ordinary Python data (None, bool, int, float, str,
list, dict). Value decides how such data behaves inside a script:
truthiness, equality, ordering and the text it renders to when it
is interpolated into dialogue.
"""

from __future__ import annotations

import json
from typing import Any

from talkengine.expressions.errors import EvaluationError


class Value:
    """A script value."""

    __slots__ = ("value",)

    def __init__(self, value: Any = None):
        if isinstance(value, Value):
            value = value.value
        self.value = value

    # Type checks

    def is_null(self) -> bool:
        return self.value is None

    def is_boolean(self) -> bool:
        return isinstance(self.value, bool)

    def is_numeric(self) -> bool:
        return isinstance(self.value, (int, float)) and not isinstance(self.value, bool)

    def is_string(self) -> bool:
        return isinstance(self.value, str)

    def is_list(self) -> bool:
        return isinstance(self.value, (list, tuple))

    def is_map(self) -> bool:
        return isinstance(self.value, dict)

    @property
    def type_name(self) -> str:
        if self.is_null():
            return "null"
        if self.is_boolean():
            return "boolean"
        if self.is_numeric():
            return "number"
        if self.is_string():
            return "string"
        if self.is_list():
            return "list"
        if self.is_map():
            return "map"
        return type(self.value).__name__

    # Conversions

    def as_boolean(self) -> bool:
        """
        Truthiness used by <<if>> and the logical operators.

        null, false, 0, empty strings, lists and maps are false.
        Everything else is true.
        """
        if self.value is None:
            return False
        if isinstance(self.value, bool):
            return self.value
        if self.is_numeric():
            return self.value != 0
        if isinstance(self.value, (str, list, tuple, dict)):
            return len(self.value) > 0
        return True

    def as_number(self) -> int | float:
        if self.is_numeric():
            return self.value
        if self.is_string():
            text = self.value.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                return float(text)
            except ValueError:
                pass
        raise EvaluationError(f"Value is not a number: {self}")

    def __str__(self) -> str:
        return format_value(self.value)

    def __repr__(self) -> str:
        return f"Value({self.value!r})"

    # Comparison

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            other = Value(other)
        return values_equal(self.value, other.value)

    __hash__ = None

    def compare(self, other: Value) -> int:
        """
        Order two values.

        Numbers order numerically and strings lexically; any other
        combination is an evaluation error.
        """
        if self.is_numeric() and other.is_numeric():
            a, b = self.value, other.value
        elif self.is_string() and other.is_string():
            a, b = self.value, other.value
        else:
            raise EvaluationError(
                f"Cannot compare {self.type_name} with {other.type_name}"
            )
        if a < b:
            return -1
        if a > b:
            return 1
        return 0


def values_equal(a: Any, b: Any) -> bool:
    """Script equality: booleans never equal numbers, numbers compare by value."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(values_equal(a[k], b[k]) for k in a)
    return a == b


def format_value(value: Any) -> str:
    """Render a raw value the way it appears in dialogue text."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)
