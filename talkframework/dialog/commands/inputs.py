"""
<<input>> - ask the user for a value inside a reply statement.

Provides:
- InputCommand: shared base (type, description, statement_log)
- InputEmailCommand, InputTextCommand, InputLongtextCommand
- InputNumericCommand, InputSetCommand, InputTimeCommand
- parse_local_time: validation of time attribute values

The variable named by an input is written later, when the client
sends the user's answer (ActiveDialogue.store_reply_input).
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from datetime import time
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from talkengine.expressions import EvaluationError, Value, format_value
from talkframework.dialog.constants import TIME_NOW
from talkframework.dialog.model import Bindings, Command, NodeBody
from talkframework.dialog.template import QUOTED_ESCAPES, TextTemplate, escape_text

if TYPE_CHECKING:
    from talkframework.systems.variables import VariableStore


def parse_local_time(text: str) -> str:
    """
    Normalize a time attribute value to "HH:MM" or "now".

    Accepts "now" in any case and ISO 8601 local times such as
    "09:05" or "09:05:30".

    Raises:
        ValueError: If the text is not a valid time
    """
    if text.lower() == TIME_NOW:
        return TIME_NOW
    parsed = time.fromisoformat(text)
    return parsed.strftime("%H:%M")


@dataclass(frozen=True, kw_only=True)
class InputCommand(Command):
    """Base of the input family."""
    name = "input"
    input_type: ClassVar[str] = ""

    description: Optional[str] = None

    def statement_log(self, store: VariableStore) -> str:
        """Text of the answer currently stored for this input."""
        raise NotImplementedError

    def parameters(self) -> dict[str, Any]:
        """Client-facing hints for building the input widget."""
        raise NotImplementedError

    def execute(self, bindings: Bindings, output: NodeBody, rng: random.Random | None = None) -> None:
        output.add_command(self.resolve(bindings))

    def resolve(self, bindings: Bindings) -> InputCommand:
        return self

    def _start(self) -> str:
        script = f'<<input type="{self.input_type}"'
        if self.description is not None:
            script += f' description="{escape_text(self.description, QUOTED_ESCAPES)}"'
        return script


@dataclass(frozen=True, kw_only=True)
class _SingleVariableInput(InputCommand):
    variable: str

    def write_variables(self) -> set[str]:
        return {self.variable}

    def statement_log(self, store: VariableStore) -> str:
        return format_value(store.get_value(self.variable))


@dataclass(frozen=True, kw_only=True)
class InputEmailCommand(_SingleVariableInput):
    input_type = "email"

    def parameters(self) -> dict[str, Any]:
        return {"variableName": self.variable}

    def to_script(self) -> str:
        return f'{self._start()} value="${self.variable}">>'


@dataclass(frozen=True, kw_only=True)
class InputTextCommand(_SingleVariableInput):
    """Free text with optional length bounds and character rules."""
    input_type = "text"

    min: Optional[int] = None
    max: Optional[int] = None
    allow_numbers: bool = True
    allow_special_characters: bool = True
    allow_spaces: bool = True
    cap_characters: bool = False
    cap_words: bool = False
    cap_sentences: bool = False
    force_cap_characters: bool = False
    force_cap_words: bool = False
    force_cap_sentences: bool = False

    # (attribute name, field name, default)
    FLAGS: ClassVar[tuple[tuple[str, str, bool], ...]] = (
        ("allowNumbers", "allow_numbers", True),
        ("allowSpecialCharacters", "allow_special_characters", True),
        ("allowSpaces", "allow_spaces", True),
        ("capCharacters", "cap_characters", False),
        ("capWords", "cap_words", False),
        ("capSentences", "cap_sentences", False),
        ("forceCapCharacters", "force_cap_characters", False),
        ("forceCapWords", "force_cap_words", False),
        ("forceCapSentences", "force_cap_sentences", False),
    )

    def parameters(self) -> dict[str, Any]:
        params: dict[str, Any] = {"variableName": self.variable}
        if self.min is not None:
            params["min"] = self.min
        if self.max is not None:
            params["max"] = self.max
        for attr, field_name, _ in self.FLAGS:
            params[attr] = getattr(self, field_name)
        return params

    def to_script(self) -> str:
        script = f'{self._start()} value="${self.variable}"'
        if self.min is not None:
            script += f' min="{self.min}"'
        if self.max is not None:
            script += f' max="{self.max}"'
        for attr, field_name, default in self.FLAGS:
            value = getattr(self, field_name)
            if value != default:
                script += f' {attr}="{"true" if value else "false"}"'
        return script + ">>"


@dataclass(frozen=True, kw_only=True)
class InputLongtextCommand(InputTextCommand):
    input_type = "longtext"


@dataclass(frozen=True, kw_only=True)
class InputNumericCommand(_SingleVariableInput):
    input_type = "numeric"

    min: Optional[int] = None
    max: Optional[int] = None

    def parameters(self) -> dict[str, Any]:
        return {"variableName": self.variable, "min": self.min, "max": self.max}

    def to_script(self) -> str:
        script = f'{self._start()} value="${self.variable}"'
        if self.min is not None:
            script += f' min="{self.min}"'
        if self.max is not None:
            script += f' max="{self.max}"'
        return script + ">>"


@dataclass(frozen=True)
class SetOption:
    """One checkbox of a set input: its variable and its label."""
    variable: str
    text: TextTemplate


@dataclass(frozen=True, kw_only=True)
class InputSetCommand(InputCommand):
    """Multiple choice. Each option sets its own variable to true or false."""
    input_type = "set"

    options: tuple[SetOption, ...] = ()

    def read_variables(self) -> set[str]:
        names = set()
        for option in self.options:
            names |= option.text.read_variables()
        return names

    def write_variables(self) -> set[str]:
        return {option.variable for option in self.options}

    def resolve(self, bindings: Bindings) -> InputSetCommand:
        options = tuple(SetOption(o.variable, o.text.execute(bindings)) for o in self.options)
        return replace(self, options=options)

    def parameters(self) -> dict[str, Any]:
        return {
            "options": [
                {"variableName": o.variable, "text": o.text.evaluate(None)}
                for o in self.options
            ]
        }

    def statement_log(self, store: VariableStore) -> str:
        chosen = [
            o.text.evaluate(None) for o in self.options
            if Value(store.get_value(o.variable)).as_boolean()
        ]
        return format_value(chosen)

    def to_script(self) -> str:
        script = self._start()
        for i, option in enumerate(self.options, start=1):
            script += f' value{i}="${option.variable}" option{i}="{option.text.to_script(QUOTED_ESCAPES)}"'
        return script + ">>"


@dataclass(frozen=True, kw_only=True)
class InputTimeCommand(_SingleVariableInput):
    """
    Time of day picker.

    start_time, min_time and max_time are templates. Plain values are
    checked when the script is parsed; values with variables are
    checked when the node runs and fail with EvaluationError.
    """
    input_type = "time"

    granularity_minutes: int = 1
    start_time: Optional[TextTemplate] = None
    min_time: Optional[TextTemplate] = None
    max_time: Optional[TextTemplate] = None

    TIME_ATTRIBUTES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("startTime", "start_time"),
        ("minTime", "min_time"),
        ("maxTime", "max_time"),
    )

    def read_variables(self) -> set[str]:
        names = set()
        for _, field_name in self.TIME_ATTRIBUTES:
            template = getattr(self, field_name)
            if template is not None:
                names |= template.read_variables()
        return names

    def resolve(self, bindings: Bindings) -> InputTimeCommand:
        changes = {}
        for _, field_name in self.TIME_ATTRIBUTES:
            template = getattr(self, field_name)
            if template is None:
                continue
            text = template.evaluate(bindings)
            try:
                changes[field_name] = TextTemplate.of(parse_local_time(text))
            except ValueError:
                raise EvaluationError(f"Invalid local time value: {text}") from None
        return replace(self, **changes)

    def parameters(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "variableName": self.variable,
            "granularityMinutes": self.granularity_minutes,
        }
        for attr, field_name in self.TIME_ATTRIBUTES:
            template = getattr(self, field_name)
            if template is not None:
                params[attr] = template.evaluate(None)
        return params

    def to_script(self) -> str:
        script = f'{self._start()} value="${self.variable}" granularityMinutes="{self.granularity_minutes}"'
        for attr, field_name in self.TIME_ATTRIBUTES:
            template = getattr(self, field_name)
            if template is not None:
                script += f' {attr}="{template.to_script(QUOTED_ESCAPES)}"'
        return script + ">>"


INPUT_COMMANDS: dict[str, type[InputCommand]] = {
    cls.input_type: cls
    for cls in (
        InputEmailCommand,
        InputTextCommand,
        InputLongtextCommand,
        InputNumericCommand,
        InputSetCommand,
        InputTimeCommand,
    )
}
