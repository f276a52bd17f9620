"""
Dialogue script files.

A script is a list of nodes. Each node has header lines, a "---" line,
body lines and a closing "===" line:

    title: Start
    speaker: Bob
    mood: happy      // free header, kept as a tag
    ---
    Hello $name!
    [[Hi Bob|Next]]
    ===

Errors in a node are collected and parsing continues with the next
node. When all nodes parse, the dialogue as a whole is checked: a
Start node must exist, the End node must have an empty body and every
internal reply pointer must name an existing node (End may be left
undefined).

Usage:
    dialogue = parse_dialogue_file("dialogues/intro.dlb")
    python -m talkframework.dialog.script dialogues/intro.dlb
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

from talkengine.core.config import RuntimeConfig
from talkengine.core.events import EventBus
from talkengine.resources.database import ScriptDatabase
from talkframework.dialog.constants import (
    BODY_COMMANDS,
    DIALOGUE_NAME_RE,
    HEADER_SEPARATOR,
    NODE_NAME_RE,
    NODE_SEPARATOR,
    is_end_id,
)
from talkframework.dialog.errors import DialogueError, DialogueParseError, NodeParseError, ScriptParseError
from talkframework.dialog.model import Dialogue, InternalNodePointer, Node, NodeHeader
from talkframework.dialog.parser import BodyParser, NodeState, PointerToken
from talkframework.dialog.tokenizer import BodyToken, BodyTokenizer

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """A dialogue, or the errors that kept it from being built."""
    dialogue: Dialogue | None = None
    errors: list[DialogueError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.dialogue is not None and not self.errors


class DialogueParser:
    """Parses the text of one dialogue script."""

    def __init__(self, dialogue_name: str, text: str):
        self.dialogue_name = dialogue_name
        self._lines = text.splitlines()
        self._pos = 0
        self._dialogue: Dialogue | None = None

    @classmethod
    def from_file(cls, path: str | Path, dialogue_name: str | None = None) -> DialogueParser:
        """Parser for a script file. The name defaults to the file stem."""
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        return cls(dialogue_name if dialogue_name is not None else path.stem, text)

    def read_dialogue(self) -> ParseResult:
        """Parse the whole script. Never raises for script errors."""
        result = ParseResult()
        if not DIALOGUE_NAME_RE.fullmatch(self.dialogue_name):
            result.errors.append(ScriptParseError(f"Invalid dialogue name: {self.dialogue_name}"))

        dialogue = Dialogue(self.dialogue_name)
        self._dialogue = dialogue
        self._pos = 0
        pointer_tokens: list[PointerToken] = []
        node_failed = False

        while True:
            outcome = self._read_node()
            if outcome is None:
                break
            node, node_pointers, error, read_node_end = outcome
            if error is not None:
                node_failed = True
                result.errors.append(error)
                if not read_node_end:
                    self._skip_to_next_node()
            else:
                dialogue.add_node(node)
                pointer_tokens.extend(node_pointers)

        if node_failed:
            return result

        if dialogue.start_node is None:
            result.errors.append(ScriptParseError(
                "Node with title \"Start\" not found", len(self._lines) + 1, 1
            ))
        for pointer_token in pointer_tokens:
            pointer = pointer_token.pointer
            if not isinstance(pointer, InternalNodePointer) or pointer.is_end:
                continue
            if dialogue.has_node(pointer.node_id):
                continue
            token = pointer_token.token
            result.errors.append(NodeParseError(pointer_token.node_title, ScriptParseError(
                f"Found reply with pointer to non-existing node: {pointer.node_id}",
                token.line, token.column,
            )))

        if not result.errors:
            result.dialogue = dialogue
        self._dialogue = None
        return result

    def parse(self) -> Dialogue:
        """
        Parse the whole script.

        Raises:
            DialogueParseError: With every error found in the script
        """
        result = self.read_dialogue()
        if not result.ok:
            raise DialogueParseError(self.dialogue_name, result.errors)
        return result.dialogue

    # Lines

    def _read_line(self) -> tuple[int, str | None]:
        """Next line and its 1-based number, or None at the end."""
        if self._pos >= len(self._lines):
            return self._pos + 1, None
        self._pos += 1
        return self._pos, self._lines[self._pos - 1]

    def _skip_to_next_node(self) -> None:
        while True:
            _, line = self._read_line()
            if line is None or _content(line) == NODE_SEPARATOR:
                return

    # Nodes

    def _read_node(self) -> tuple[Node | None, list[PointerToken], NodeParseError | None, bool] | None:
        """
        Read one node.

        Returns:
            None at the end of the script, else (node, pointer tokens,
            error, whether the closing separator was consumed)
        """
        state = NodeState(self.dialogue_name)
        tags: dict[str, str] = {}
        seen: set[str] = set()
        read_node_end = False
        try:
            in_header = True
            line_number, line = self._read_line()
            while line is not None and in_header:
                content = _content(line)
                if content == NODE_SEPARATOR:
                    read_node_end = True
                    raise ScriptParseError("End of header not found", line_number, 1)
                if content == HEADER_SEPARATOR:
                    in_header = False
                else:
                    self._parse_header_line(tags, seen, line, line_number, state)
                    line_number, line = self._read_line()
            if in_header:
                if not seen:
                    return None
                raise ScriptParseError("Found incomplete node at end of file", line_number, 1)

            header = self._create_header(tags, line_number, state)

            tokenizer = BodyTokenizer()
            tokens: list[BodyToken] = []
            line_number, line = self._read_line()
            while line is not None:
                if _content(line) == NODE_SEPARATOR:
                    read_node_end = True
                    break
                tokens.extend(tokenizer.read_body_tokens(line + "\n", line_number))
                line_number, line = self._read_line()

            body = BodyParser(state).parse(tokens, BODY_COMMANDS)
            if is_end_id(header.title) and (body.segments or body.replies):
                raise ScriptParseError(
                    f"Node \"{header.title}\" must have an empty body", tokens[0].line, tokens[0].column
                )
            logger.debug(f"Parsed node {header.title} of dialogue {self.dialogue_name}")
            return Node(header, body), state.pointer_tokens, None, read_node_end
        except ScriptParseError as e:
            return None, [], NodeParseError(state.title, e), read_node_end

    def _parse_header_line(
        self,
        tags: dict[str, str],
        seen: set[str],
        line: str,
        line_number: int,
        state: NodeState,
    ) -> None:
        line = line.split("//", 1)[0]
        if not line.strip():
            return
        key_part, sep, value_part = line.partition(":")
        if not sep:
            raise ScriptParseError("Character : not found in header line", line_number, 1)
        key = key_part.strip()
        if not key:
            raise ScriptParseError("Found empty header name", line_number, 1)
        key_column = len(key_part) - len(key_part.lstrip()) + 1
        value = value_part.strip()
        value_column = len(key_part) + 2 + len(value_part) - len(value_part.lstrip())
        if key in seen:
            raise ScriptParseError(f"Found duplicate header: {key}", line_number, key_column)
        seen.add(key)

        if key == "title":
            if not NODE_NAME_RE.fullmatch(value):
                raise ScriptParseError(f"Invalid node title: {value}", line_number, value_column)
            if self._dialogue.has_node(value):
                raise ScriptParseError(f"Found duplicate node title: {value}", line_number, value_column)
            state.title = value
        elif key == "speaker":
            state.speaker = value
            state.speaker_line = line_number
            state.speaker_column = value_column
        else:
            tags[key] = value

    @staticmethod
    def _create_header(tags: dict[str, str], line_number: int, state: NodeState) -> NodeHeader:
        if state.title is None:
            raise ScriptParseError("Required header \"title\" not found", line_number, 1)
        speaker = state.speaker
        if is_end_id(state.title):
            speaker = None
        elif speaker is None:
            raise ScriptParseError("Required header \"speaker\" not found", line_number, 1)
        elif not speaker:
            raise ScriptParseError("Found empty speaker", state.speaker_line, state.speaker_column)
        return NodeHeader(state.title, speaker, tuple(tags.items()))


def _content(line: str) -> str:
    """Line without comment and surrounding whitespace."""
    return line.split("//", 1)[0].strip()


def parse_dialogue(dialogue_name: str, text: str) -> Dialogue:
    """
    Parse script text.

    Raises:
        DialogueParseError: If the script has errors
    """
    return DialogueParser(dialogue_name, text).parse()


def parse_dialogue_file(path: str | Path, dialogue_name: str | None = None) -> Dialogue:
    """
    Parse a script file.

    Raises:
        OSError: If the file can't be read
        DialogueParseError: If the script has errors
    """
    return DialogueParser.from_file(path, dialogue_name).parse()


# Errors that make the database skip a script instead of failing
SCRIPT_LOAD_ERRORS = (OSError, ValueError, DialogueError)


def load_script_database(
    config: RuntimeConfig | None = None,
    events: EventBus | None = None,
) -> ScriptDatabase[Dialogue]:
    """Load every script under config.scripts_path."""
    config = config if config is not None else RuntimeConfig()
    database: ScriptDatabase[Dialogue] = ScriptDatabase(
        config.scripts_path,
        parse_dialogue,
        extension=config.script_extension,
        events=events,
        load_errors=SCRIPT_LOAD_ERRORS,
    )
    database.load_all()
    return database


def main(argv: list[str] | None = None) -> int:
    """Parse a script file and print a summary of the dialogue."""
    logging.basicConfig(level=logging.INFO)
    arg_parser = argparse.ArgumentParser(
        description="Parse a dialogue script and print a summary of the dialogue."
    )
    arg_parser.add_argument("file", type=Path, help="dialogue script file")
    args = arg_parser.parse_args(argv)

    path = args.file.resolve()
    if not path.exists():
        logger.error(f"File not found: {args.file}")
        return 1
    if not path.is_file():
        logger.error(f"Path is not a file: {path}")
        return 1

    try:
        result = DialogueParser.from_file(path).read_dialogue()
    except OSError as e:
        logger.error(f"Can't read file: {path}: {e}")
        return 1

    if not result.ok:
        logger.error(f"Failed to parse file: {path}")
        for error in result.errors:
            print(error, file=sys.stderr)
        return 1

    logger.info(f"Finished parsing dialogue from file: {path}")
    print(result.dialogue.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
