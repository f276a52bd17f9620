"""
Dialogue model - parsed scripts as an immutable-by-convention tree.

A Dialogue is a set of Nodes. Each Node has a header (title, speaker,
free tags) and a NodeBody. A body is an ordered list of segments
(text or command) followed by the replies the user can choose from.
Replies point to another node, to a node in another dialogue, or to
the reserved End node.

Definition trees are built by the parser and then only read. Running
a node never changes its definition: execution appends resolved
segments and replies to a fresh NodeBody.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, MutableMapping

from talkframework.dialog.constants import (
    AUTOFORWARD,
    PATH_SEPARATOR,
    START_NODE_ID,
    is_end_id,
)
from talkframework.dialog.template import TextTemplate

Bindings = MutableMapping[str, Any]


# Node pointers

@dataclass(frozen=True)
class InternalNodePointer:
    """Pointer to a node of the same dialogue, or to End."""
    node_id: str

    @property
    def is_end(self) -> bool:
        return is_end_id(self.node_id)

    def sort_key(self) -> tuple:
        return (0, "", self.node_id)

    def to_script(self) -> str:
        return self.node_id


@dataclass(frozen=True)
class ExternalNodePointer:
    """
    Pointer to a node of another dialogue.

    The reference is resolved against the folder of the origin
    dialogue: "intro.start" next to the origin, "../common/bye.start"
    one folder up, "./root.start" from the project root. A leading "/"
    is ignored, so "/intro.start" is the same as "intro.start".
    """
    dialogue_reference: str = field(compare=False)
    node_id: str
    origin_dialogue: str = field(compare=False, default="")
    absolute_dialogue: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(
            self, "absolute_dialogue",
            resolve_dialogue_path(self.origin_dialogue, self.dialogue_reference),
        )

    @property
    def is_end(self) -> bool:
        return False

    def sort_key(self) -> tuple:
        return (1, self.absolute_dialogue, self.node_id)

    def to_script(self) -> str:
        return f"{self.dialogue_reference}.{self.node_id}"


NodePointer = InternalNodePointer | ExternalNodePointer


def resolve_dialogue_path(origin_dialogue: str, reference: str) -> str:
    """
    Absolute dialogue name for a reference made from origin_dialogue.

    Raises:
        ValueError: If the reference is empty or climbs above the root
    """
    if reference.startswith("." + PATH_SEPARATOR):
        result = reference[2:]
        if not result:
            raise ValueError("External node pointer refers to empty dialogue name")
        return result

    path = origin_dialogue.split(PATH_SEPARATOR)[:-1] if PATH_SEPARATOR in origin_dialogue else []
    target = reference[1:] if reference.startswith(PATH_SEPARATOR) else reference

    while PATH_SEPARATOR in target:
        folder, target = target.split(PATH_SEPARATOR, 1)
        if folder == "..":
            if not path:
                raise ValueError("External node pointer refers to a dialogue above the root")
            path.pop()
        elif folder not in ("", "."):
            path.append(folder)

    if not target:
        raise ValueError("External node pointer refers to empty dialogue name")
    return PATH_SEPARATOR.join([*path, target])


# Commands

class Command:
    """
    Base class of the closed command vocabulary.

    Subclasses: ActionCommand, IfCommand, RandomCommand, SetCommand and
    the InputCommand family. Execution appends output to the given
    NodeBody and must never modify the command itself.
    """

    name: ClassVar[str] = ""

    def read_variables(self) -> set[str]:
        return set()

    def write_variables(self) -> set[str]:
        return set()

    def node_pointers(self) -> list[NodePointer]:
        return []

    def find_reply(self, reply_id: int) -> Reply | None:
        return None

    def execute(self, bindings: Bindings, output: NodeBody, rng: random.Random | None = None) -> None:
        raise NotImplementedError

    def resolve_in_reply(self, bindings: Bindings) -> Command:
        """Version of this command shown with a resolved reply."""
        return self

    def to_script(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.to_script()


# Segments

@dataclass(frozen=True)
class TextSegment:
    text: TextTemplate

    def to_script(self) -> str:
        return self.text.to_script()


@dataclass(frozen=True)
class CommandSegment:
    command: Command

    def to_script(self) -> str:
        return self.command.to_script()


Segment = TextSegment | CommandSegment


# Replies and bodies

@dataclass
class Reply:
    """
    A reply option.

    Attributes:
        reply_id: Unique within its node, numbered from 1 in script order
        statement: What the user says, or None for an auto-forward reply
        pointer: Where the dialogue continues
        commands: action and set commands run when the reply is chosen
    """
    reply_id: int
    statement: NodeBody | None
    pointer: NodePointer
    commands: list[Command] = field(default_factory=list)

    @property
    def is_autoforward(self) -> bool:
        return self.statement is None

    @property
    def ends_dialogue(self) -> bool:
        return self.pointer.is_end

    def read_variables(self) -> set[str]:
        names = self.statement.read_variables() if self.statement else set()
        for command in self.commands:
            names |= command.read_variables()
        return names

    def write_variables(self) -> set[str]:
        names = self.statement.write_variables() if self.statement else set()
        for command in self.commands:
            names |= command.write_variables()
        return names

    def execute(self, bindings: Bindings, rng: random.Random | None = None) -> Reply:
        """Resolved copy of this reply. Its set commands are kept, not run."""
        statement = None
        if self.statement is not None:
            statement = NodeBody()
            self.statement.execute(bindings, statement, rng)
        return Reply(
            reply_id=self.reply_id,
            statement=statement,
            pointer=self.pointer,
            commands=[command.resolve_in_reply(bindings) for command in self.commands],
        )

    def to_script(self) -> str:
        sections = []
        if self.statement is not None:
            sections.append(self.statement.to_script())
        sections.append(self.pointer.to_script())
        if self.commands:
            sections.append("".join(command.to_script() for command in self.commands))
        return "[[" + "|".join(sections) + "]]"


@dataclass
class NodeBody:
    """Segments and replies of a node, a clause or a reply statement."""
    segments: list[Segment] = field(default_factory=list)
    replies: list[Reply] = field(default_factory=list)

    def add_segment(self, segment: Segment) -> None:
        if (
            isinstance(segment, TextSegment)
            and self.segments
            and isinstance(self.segments[-1], TextSegment)
        ):
            self.segments[-1] = TextSegment(self.segments[-1].text + segment.text)
        else:
            self.segments.append(segment)

    def add_text(self, text: TextTemplate) -> None:
        if text:
            self.add_segment(TextSegment(text))

    def add_command(self, command: Command) -> None:
        self.add_segment(CommandSegment(command))

    def add_reply(self, reply: Reply) -> None:
        self.replies.append(reply)

    @property
    def commands(self) -> list[Command]:
        return [s.command for s in self.segments if isinstance(s, CommandSegment)]

    def has_autoforward_reply(self) -> bool:
        return any(reply.statement is None for reply in self.replies)

    def find_reply(self, reply_id: int) -> Reply | None:
        """Find a reply here or in any nested clause body."""
        for reply in self.replies:
            if reply.reply_id == reply_id:
                return reply
        for command in self.commands:
            reply = command.find_reply(reply_id)
            if reply is not None:
                return reply
        return None

    def read_variables(self) -> set[str]:
        names: set[str] = set()
        for segment in self.segments:
            if isinstance(segment, TextSegment):
                names |= segment.text.read_variables()
            else:
                names |= segment.command.read_variables()
        for reply in self.replies:
            names |= reply.read_variables()
        return names

    def write_variables(self) -> set[str]:
        names: set[str] = set()
        for command in self.commands:
            names |= command.write_variables()
        for reply in self.replies:
            names |= reply.write_variables()
        return names

    def node_pointers(self) -> list[NodePointer]:
        """Distinct pointers used in this body, internal ones first."""
        pointers = set()
        for command in self.commands:
            pointers.update(command.node_pointers())
        for reply in self.replies:
            pointers.add(reply.pointer)
        return sorted(pointers, key=lambda p: p.sort_key())

    def execute(
        self,
        bindings: Bindings,
        output: NodeBody,
        rng: random.Random | None = None,
        trim: bool = False,
    ) -> None:
        """
        Run this body, appending the result to output.

        Segments run in order, so a set command is visible to every
        segment after it. Replies are resolved after all segments.
        """
        for segment in self.segments:
            if isinstance(segment, TextSegment):
                output.add_segment(TextSegment(segment.text.execute(bindings)))
            else:
                segment.command.execute(bindings, output, rng)
        for reply in self.replies:
            output.add_reply(reply.execute(bindings, rng))
        if trim:
            output.trim_whitespace()

    def trim_whitespace(self) -> None:
        """Strip whitespace from the text at both ends of the body."""
        while self.segments and isinstance(self.segments[0], TextSegment):
            text = self.segments[0].text.lstrip()
            if text:
                self.segments[0] = TextSegment(text)
                break
            self.segments.pop(0)
        while self.segments and isinstance(self.segments[-1], TextSegment):
            text = self.segments[-1].text.rstrip()
            if text:
                self.segments[-1] = TextSegment(text)
                break
            self.segments.pop()

    def text(self) -> str:
        """Plain text of the resolved text segments."""
        return "".join(str(s.text) for s in self.segments if isinstance(s, TextSegment))

    def to_script(self) -> str:
        script = "".join(segment.to_script() for segment in self.segments)
        for reply in self.replies:
            script += "\n" + reply.to_script()
        return script

    def __str__(self) -> str:
        return self.to_script()


# Nodes and dialogues

@dataclass(frozen=True)
class NodeHeader:
    title: str
    speaker: str | None = None
    tags: tuple[tuple[str, str], ...] = ()

    def tag(self, name: str, default: str | None = None) -> str | None:
        return dict(self.tags).get(name, default)

    def to_script(self) -> str:
        lines = [f"title: {self.title}"]
        if self.speaker is not None:
            lines.append(f"speaker: {self.speaker}")
        lines.extend(f"{key}: {value}" for key, value in self.tags)
        return "\n".join(lines)


@dataclass(frozen=True)
class Node:
    header: NodeHeader
    body: NodeBody = field(default_factory=NodeBody)

    @property
    def title(self) -> str:
        return self.header.title

    @property
    def speaker(self) -> str | None:
        return self.header.speaker

    @property
    def replies(self) -> list[Reply]:
        return self.body.replies

    def to_script(self) -> str:
        return f"{self.header.to_script()}\n---\n{self.body.to_script()}\n==="


class Dialogue:
    """
    A parsed dialogue script.

    Nodes are indexed by lower-case title, so lookups ignore case.
    Shared read-only between every conversation that runs it.
    """

    def __init__(self, name: str):
        self.name = name
        self._nodes: dict[str, Node] = {}
        self.speakers: set[str] = set()
        self.variables_needed: set[str] = set()
        self.variables_written: set[str] = set()
        self.dialogues_referenced: set[str] = set()

    def add_node(self, node: Node) -> None:
        self._nodes[node.title.lower()] = node
        if node.speaker is not None:
            self.speakers.add(node.speaker)
        self.variables_needed |= node.body.read_variables()
        self.variables_written |= node.body.write_variables()
        for pointer in node.body.node_pointers():
            if isinstance(pointer, ExternalNodePointer):
                self.dialogues_referenced.add(pointer.absolute_dialogue)

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    @property
    def start_node(self) -> Node | None:
        return self._nodes.get(START_NODE_ID)

    def has_node(self, node_id: str) -> bool:
        return node_id.lower() in self._nodes

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id.lower())

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def summary(self) -> str:
        lines = [
            f"Dialogue Name: {self.name}",
            f"Number of Nodes: {self.node_count}",
            "",
        ]
        for label, names in (
            ("Speakers present", self.speakers),
            ("Dialogues referenced", self.dialogues_referenced),
            ("Variables needed", self.variables_needed),
            ("Variables written", self.variables_written),
        ):
            lines.append(f"{label} ({len(names)}):")
            lines.extend(f"  - {name}" for name in sorted(names))
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"Dialogue({self.name!r}, nodes={self.node_count})"


def user_statement_of(reply: Reply, statement_log: Callable[[Command], str]) -> str:
    """
    Text the user said by choosing a reply.

    statement_log maps an input command to the text of the value the
    user entered for it.
    """
    if reply.statement is None:
        return AUTOFORWARD
    out = []
    for segment in reply.statement.segments:
        if isinstance(segment, TextSegment):
            out.append(str(segment.text))
        else:
            out.append(statement_log(segment.command))
    return "".join(out)
