"""
Dialogue scripts.

Exports:
- parse_dialogue, parse_dialogue_file, DialogueParser: Script parsing
- Dialogue, Node, NodeBody, Reply and pointer types: Script model
- ActiveDialogue, DialogueManager: Execution
- DialogueError and subclasses
"""

from talkframework.dialog.errors import (
    DialogueError,
    ScriptParseError,
    UnterminatedBlockError,
    InvalidAttributeError,
    UnknownCommandError,
    DuplicateClauseError,
    NodeParseError,
    DialogueParseError,
    ExecutionError,
    NodeNotFoundError,
    ReplyNotFoundError,
    EvaluationError,
)
from talkframework.dialog.model import (
    Bindings,
    Command,
    CommandSegment,
    Dialogue,
    ExternalNodePointer,
    InternalNodePointer,
    Node,
    NodeBody,
    NodeHeader,
    NodePointer,
    Reply,
    Segment,
    TextSegment,
    resolve_dialogue_path,
)
from talkframework.dialog.template import TextTemplate
from talkframework.dialog.script import (
    DialogueParser,
    ParseResult,
    load_script_database,
    parse_dialogue,
    parse_dialogue_file,
)
from talkframework.dialog.system import ActiveDialogue, DialogueManager, DialogueStatus

__all__ = [
    # Parsing
    "DialogueParser",
    "ParseResult",
    "parse_dialogue",
    "parse_dialogue_file",
    "load_script_database",
    # Model
    "Bindings",
    "Command",
    "CommandSegment",
    "Dialogue",
    "ExternalNodePointer",
    "InternalNodePointer",
    "Node",
    "NodeBody",
    "NodeHeader",
    "NodePointer",
    "Reply",
    "Segment",
    "TextSegment",
    "TextTemplate",
    "resolve_dialogue_path",
    # Execution
    "ActiveDialogue",
    "DialogueManager",
    "DialogueStatus",
    # Errors
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
