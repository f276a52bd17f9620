"""
Text templates - text with $variable references.

A template is an immutable list of parts: literal text and variable
references. Executing a template against bindings replaces every
variable with the formatted value of that variable (null when unset).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Union

from talkengine.expressions import format_value

# Characters escaped when a template is written back as body text
BODY_ESCAPES = "\\$<>[]|"
# Characters escaped inside a quoted attribute value
QUOTED_ESCAPES = '\\$"'


@dataclass(frozen=True)
class LiteralPart:
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class VariablePart:
    name: str

    def __str__(self) -> str:
        return f"${self.name}"


Part = Union[LiteralPart, VariablePart]


@dataclass(frozen=True)
class TextTemplate:
    """Immutable interpolated text. Adjacent literal parts are always merged."""

    parts: tuple[Part, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "parts", _normalize(self.parts))

    @classmethod
    def of(cls, *parts: Part | str) -> TextTemplate:
        return cls(tuple(LiteralPart(p) if isinstance(p, str) else p for p in parts))

    @classmethod
    def variable(cls, name: str) -> TextTemplate:
        return cls((VariablePart(name),))

    def __add__(self, other: TextTemplate) -> TextTemplate:
        return TextTemplate(self.parts + other.parts)

    def __bool__(self) -> bool:
        return bool(self.parts)

    # Queries

    def read_variables(self) -> set[str]:
        return {p.name for p in self.parts if isinstance(p, VariablePart)}

    def is_plain_text(self) -> bool:
        return all(isinstance(p, LiteralPart) for p in self.parts)

    def is_whitespace(self) -> bool:
        return all(isinstance(p, LiteralPart) and not p.text.strip() for p in self.parts)

    def single_variable(self) -> str | None:
        """Name of the variable if the template is exactly one $variable."""
        if len(self.parts) == 1 and isinstance(self.parts[0], VariablePart):
            return self.parts[0].name
        return None

    # Execution

    def execute(self, bindings: Mapping[str, Any] | None) -> TextTemplate:
        """Resolve every variable. The result is plain text."""
        return TextTemplate.of(self.evaluate(bindings))

    def evaluate(self, bindings: Mapping[str, Any] | None) -> str:
        out = []
        for part in self.parts:
            if isinstance(part, LiteralPart):
                out.append(part.text)
            else:
                value = bindings.get(part.name) if bindings is not None else None
                out.append(format_value(value))
        return "".join(out)

    # Whitespace

    def lstrip(self) -> TextTemplate:
        parts = list(self.parts)
        while parts and isinstance(parts[0], LiteralPart):
            text = parts[0].text.lstrip()
            if text:
                parts[0] = LiteralPart(text)
                break
            parts.pop(0)
        return TextTemplate(tuple(parts))

    def rstrip(self) -> TextTemplate:
        parts = list(self.parts)
        while parts and isinstance(parts[-1], LiteralPart):
            text = parts[-1].text.rstrip()
            if text:
                parts[-1] = LiteralPart(text)
                break
            parts.pop()
        return TextTemplate(tuple(parts))

    def strip(self) -> TextTemplate:
        return self.lstrip().rstrip()

    # Serialization

    def to_script(self, escapes: str = BODY_ESCAPES) -> str:
        """Script source for this template, escaping the given characters."""
        out = []
        for part in self.parts:
            if isinstance(part, VariablePart):
                out.append(str(part))
            else:
                out.append(escape_text(part.text, escapes))
        return "".join(out)

    def __str__(self) -> str:
        return "".join(str(p) for p in self.parts)


def escape_text(text: str, escapes: str) -> str:
    result = re.sub("[" + re.escape(escapes) + "]", lambda m: "\\" + m.group(0), text)
    if escapes == BODY_ESCAPES:
        # "//" would start a comment
        result = re.sub(r"(?<=/)/", r"\\/", result)
    return result


def _normalize(parts: Iterable[Part]) -> tuple[Part, ...]:
    result: list[Part] = []
    for part in parts:
        if isinstance(part, LiteralPart):
            if not part.text:
                continue
            if result and isinstance(result[-1], LiteralPart):
                result[-1] = LiteralPart(result[-1].text + part.text)
                continue
        result.append(part)
    return tuple(result)
