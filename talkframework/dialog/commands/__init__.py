"""
Dialogue commands.

The command vocabulary is closed: action, if, random, set and the
input family. Parsing lives in talkframework.dialog.parser.
"""

from talkframework.dialog.commands.action import ActionCommand
from talkframework.dialog.commands.assignment import SetCommand
from talkframework.dialog.commands.conditional import IfClause, IfCommand
from talkframework.dialog.commands.inputs import (
    INPUT_COMMANDS,
    InputCommand,
    InputEmailCommand,
    InputLongtextCommand,
    InputNumericCommand,
    InputSetCommand,
    InputTextCommand,
    InputTimeCommand,
    SetOption,
    parse_local_time,
)
from talkframework.dialog.commands.weighted import DEFAULT_WEIGHT, RandomClause, RandomCommand

__all__ = [
    # Body commands
    "ActionCommand",
    "IfClause",
    "IfCommand",
    "RandomClause",
    "RandomCommand",
    "DEFAULT_WEIGHT",
    "SetCommand",
    # Inputs
    "InputCommand",
    "InputEmailCommand",
    "InputTextCommand",
    "InputLongtextCommand",
    "InputNumericCommand",
    "InputSetCommand",
    "InputTimeCommand",
    "SetOption",
    "INPUT_COMMANDS",
    "parse_local_time",
]
