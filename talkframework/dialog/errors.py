"""
Dialogue errors.

Hierarchy:
    DialogueError
    ├── ScriptParseError (line, column)
    │   ├── UnterminatedBlockError
    │   ├── InvalidAttributeError
    │   ├── UnknownCommandError
    │   └── DuplicateClauseError
    ├── NodeParseError (a ScriptParseError tagged with its node)
    ├── DialogueParseError (all node errors of one script)
    └── ExecutionError
        ├── NodeNotFoundError
        └── ReplyNotFoundError

Expression failures at run time are raised as
talkengine.expressions.EvaluationError and are not wrapped.
"""

from __future__ import annotations

from talkengine.expressions import EvaluationError


class DialogueError(Exception):
    """Base class for dialogue errors."""


class ScriptParseError(DialogueError):
    """Syntax error in a node body, with 1-based line and column."""

    def __init__(self, message: str, line: int = 0, column: int = 0):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line:
            return f"{self.message} (line {self.line}, column {self.column})"
        return self.message


class UnterminatedBlockError(ScriptParseError):
    """A command, reply, quoted string or clause block was never closed."""


class InvalidAttributeError(ScriptParseError):
    """A command attribute is missing, malformed or has an invalid value."""


class UnknownCommandError(ScriptParseError):
    """A command name is unknown or not allowed where it appears."""


class DuplicateClauseError(ScriptParseError):
    """A clause appears twice or out of order (else, elseif after else)."""


class NodeParseError(DialogueError):
    """A parse error inside a named node."""

    def __init__(self, node_title: str | None, cause: ScriptParseError):
        prefix = "Error in node" if node_title is None else f"Error in node {node_title}"
        super().__init__(f"{prefix}: {cause}")
        self.node_title = node_title
        self.cause = cause

    @property
    def line(self) -> int:
        return self.cause.line

    @property
    def column(self) -> int:
        return self.cause.column


class DialogueParseError(DialogueError):
    """A script failed to parse. Holds every error found in it."""

    def __init__(self, dialogue_name: str, errors: list[DialogueError]):
        lines = [f"Failed to parse dialogue \"{dialogue_name}\":"]
        lines.extend(f"  {error}" for error in errors)
        super().__init__("\n".join(lines))
        self.dialogue_name = dialogue_name
        self.errors = errors


class ExecutionError(DialogueError):
    """A caller asked for something that does not exist."""


class NodeNotFoundError(ExecutionError):
    def __init__(self, node_id: str, dialogue_name: str):
        super().__init__(f"Node \"{node_id}\" not found in dialogue \"{dialogue_name}\"")
        self.node_id = node_id
        self.dialogue_name = dialogue_name


class ReplyNotFoundError(ExecutionError):
    def __init__(self, reply_id: int, dialogue_name: str, node_title: str | None):
        super().__init__(
            f"Reply with ID {reply_id} not found in dialogue \"{dialogue_name}\", "
            f"node \"{node_title}\""
        )
        self.reply_id = reply_id
        self.dialogue_name = dialogue_name
        self.node_title = node_title


__all__ = [
    "DialogueError",
    "ScriptParseError",
    "UnterminatedBlockError",
    "InvalidAttributeError",
    "UnknownCommandError",
    "DuplicateClauseError",
    "NodeParseError",
    "DialogueParseError",
    "ExecutionError",
    "NodeNotFoundError",
    "ReplyNotFoundError",
    "EvaluationError",
]
