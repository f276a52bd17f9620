"""
Dialogue system - runs parsed dialogues against a user's variables.

Provides:
- ActiveDialogue: one conversation, node by node
- DialogueManager: dialogue cache, external pointers, lifecycle events

A turn goes:
    node = active.start()                    # resolved Start node
    pointer = active.resolve_reply(2)        # runs the reply's set commands
    node = active.advance(pointer)           # next resolved node, or None

DialogueManager.select_reply does the last two steps and also follows
pointers into other dialogues.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Mapping, MutableMapping

from talkengine.core.config import RuntimeConfig
from talkengine.core.events import DialogueEvent, EventBus
from talkframework.components.variables import ChangeSource
from talkframework.dialog.commands import InputCommand, SetCommand
from talkframework.dialog.constants import START_NODE_ID
from talkframework.dialog.errors import ExecutionError, NodeNotFoundError, ReplyNotFoundError
from talkframework.dialog.model import (
    Dialogue,
    ExternalNodePointer,
    Node,
    NodeBody,
    NodePointer,
    Reply,
    user_statement_of,
)
from talkframework.systems.variables import VariableStore

if TYPE_CHECKING:
    from talkengine.resources.database import ScriptDatabase

logger = logging.getLogger(__name__)


class DialogueStatus(Enum):
    NOT_STARTED = auto()
    ACTIVE = auto()
    ENDED = auto()


class ActiveDialogue:
    """
    One running conversation of one user.

    The Dialogue definition is shared and never changed. current_node
    holds the resolved node last shown to the user. It is only replaced
    after a node executed without errors, so a failed turn can be
    retried.
    """

    def __init__(
        self,
        dialogue: Dialogue,
        store: VariableStore,
        rng: random.Random | None = None,
        notify: bool = True,
    ):
        self.dialogue = dialogue
        self.store = store
        self.rng = rng
        # Whether script writes reach the store listeners
        self.notify = notify
        self.current_node: Node | None = None
        self.status = DialogueStatus.NOT_STARTED

    @property
    def name(self) -> str:
        return self.dialogue.name

    @property
    def is_ended(self) -> bool:
        return self.status == DialogueStatus.ENDED

    def start(self, node_id: str | None = None, event_time: datetime | None = None) -> Node:
        """
        Execute the start node, or node_id if given.

        Raises:
            NodeNotFoundError: If the node doesn't exist
            EvaluationError: If an expression fails
        """
        if node_id is None:
            node = self.dialogue.start_node
        else:
            node = self.dialogue.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id or START_NODE_ID, self.dialogue.name)
        self.current_node = self.execute_node(node, event_time)
        self.status = DialogueStatus.ACTIVE
        logger.info(f"Started dialogue {self.dialogue.name} at node {node.title}")
        return self.current_node

    def resolve_reply(self, reply_id: int, event_time: datetime | None = None) -> NodePointer:
        """
        Run the set commands of a reply of the current node.

        Action commands are for the client and are not run here. The
        current node stays the same until advance().

        Raises:
            ReplyNotFoundError: If the current node has no such reply
        """
        reply = self._find_reply(reply_id)
        bindings = self.store.bindings(self.notify, event_time, ChangeSource.SCRIPT)
        for command in reply.commands:
            if isinstance(command, SetCommand):
                command.apply(bindings)
        logger.debug(f"Resolved reply {reply_id} of {self.dialogue.name}: {reply.pointer.to_script()}")
        return reply.pointer

    def advance(self, pointer: NodePointer, event_time: datetime | None = None) -> Node | None:
        """
        Move to the node a pointer names and execute it.

        Returns None and ends the dialogue for the End pointer. A
        pointer to a node that doesn't exist also ends the dialogue.

        Raises:
            ExecutionError: For a pointer into another dialogue
        """
        if isinstance(pointer, ExternalNodePointer):
            raise ExecutionError(
                f"Pointer {pointer.to_script()} leads to dialogue \"{pointer.absolute_dialogue}\", "
                f"follow it with DialogueManager"
            )
        node = None
        if not pointer.is_end:
            node = self.dialogue.get_node(pointer.node_id)
            if node is None:
                logger.warning(
                    f"Node {pointer.node_id} not found in dialogue {self.dialogue.name}, ending dialogue"
                )
        if node is None:
            self.end()
            return None
        self.current_node = self.execute_node(node, event_time)
        self.status = DialogueStatus.ACTIVE
        return self.current_node

    def end(self) -> None:
        self.current_node = None
        self.status = DialogueStatus.ENDED
        logger.info(f"Ended dialogue {self.dialogue.name}")

    def execute_node(self, node: Node, event_time: datetime | None = None) -> Node:
        """Resolve a node against the live store. Set commands write through."""
        bindings = self.store.bindings(self.notify, event_time, ChangeSource.SCRIPT)
        return self._execute(node, bindings)

    def execute_node_stateless(self, node: Node, event_time: datetime | None = None) -> Node:
        """Resolve a node against a copy of the store. Set commands only change the copy."""
        return self._execute(node, self.store.snapshot())

    def _execute(self, node: Node, bindings: MutableMapping[str, Any]) -> Node:
        body = NodeBody()
        node.body.execute(bindings, body, self.rng, trim=True)
        logger.debug(
            f"Executed node {node.title} of {self.dialogue.name}: "
            f"{len(body.segments)} segments, {len(body.replies)} replies"
        )
        return Node(node.header, body)

    def user_statement(self, reply_id: int) -> str:
        """What the user said by choosing a reply, with input values filled in."""
        reply = self._find_reply(reply_id)
        return user_statement_of(reply, self._statement_log)

    def _statement_log(self, command: Any) -> str:
        if isinstance(command, InputCommand):
            return command.statement_log(self.store)
        return ""

    def store_reply_input(self, variables: Mapping[str, Any], event_time: datetime | None = None) -> None:
        """Store the values the user entered in the inputs of a reply."""
        self.store.add_all(variables, self.notify, event_time, ChangeSource.INPUT_REPLY)

    def _find_reply(self, reply_id: int) -> Reply:
        node = self.current_node
        reply = node.body.find_reply(reply_id) if node is not None else None
        if reply is None:
            raise ReplyNotFoundError(reply_id, self.dialogue.name, node.title if node else None)
        return reply

    def __repr__(self) -> str:
        title = self.current_node.title if self.current_node else None
        return f"ActiveDialogue({self.dialogue.name!r}, node={title!r}, status={self.status.name})"


class DialogueManager:
    """
    Owns dialogue definitions and drives conversations.

    Definitions come from add_dialogue() or, when a ScriptDatabase is
    given, are looked up there on first use.
    """

    def __init__(
        self,
        events: EventBus | None = None,
        database: ScriptDatabase | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.events = events if events is not None else EventBus()
        self.database = database
        self.config = config if config is not None else RuntimeConfig()
        self._dialogues: dict[str, Dialogue] = {}

    def add_dialogue(self, dialogue: Dialogue) -> None:
        self._dialogues[dialogue.name] = dialogue

    def get_dialogue(self, name: str) -> Dialogue | None:
        dialogue = self._dialogues.get(name)
        if dialogue is None and self.database is not None:
            dialogue = self.database.get(name)
            if dialogue is not None:
                self._dialogues[name] = dialogue
        return dialogue

    @property
    def dialogue_names(self) -> list[str]:
        return sorted(self._dialogues)

    def start_dialogue(
        self,
        name: str,
        store: VariableStore,
        node_id: str | None = None,
        event_time: datetime | None = None,
    ) -> ActiveDialogue:
        """
        Start a conversation.

        Raises:
            ExecutionError: If the dialogue is unknown
            NodeNotFoundError: If node_id doesn't exist
        """
        active = self._begin(name, store, node_id, event_time)
        self._publish_started(active)
        return active

    def _begin(
        self,
        name: str,
        store: VariableStore,
        node_id: str | None,
        event_time: datetime | None,
    ) -> ActiveDialogue:
        dialogue = self.get_dialogue(name)
        if dialogue is None:
            raise ExecutionError(f"Dialogue \"{name}\" not found")
        active = ActiveDialogue(dialogue, store, self.config.make_rng(), self.config.notify_listeners)
        active.start(node_id, event_time)
        return active

    def _publish_started(self, active: ActiveDialogue) -> None:
        self.events.publish(DialogueEvent.DIALOGUE_STARTED, dialogue=active.name, active=active)
        self.events.publish(
            DialogueEvent.NODE_ENTERED, dialogue=active.name, active=active, node=active.current_node
        )

    def select_reply(
        self,
        active: ActiveDialogue,
        reply_id: int,
        event_time: datetime | None = None,
    ) -> tuple[ActiveDialogue, Node | None]:
        """
        Choose a reply and move on.

        Returns:
            (the conversation now running, its resolved node). When the
            reply points into another dialogue, that dialogue is started
            on the same store and the old one ends. The node is None
            when the conversation has ended.
        """
        statement = active.user_statement(reply_id)
        pointer = active.resolve_reply(reply_id, event_time)
        self.events.publish(
            DialogueEvent.REPLY_SELECTED,
            dialogue=active.name, active=active, reply_id=reply_id, statement=statement, pointer=pointer,
        )

        if isinstance(pointer, ExternalNodePointer):
            logger.info(f"Following {pointer.to_script()} from {active.name} to {pointer.absolute_dialogue}")
            # The old conversation stays current until the target has started
            following = self._begin(pointer.absolute_dialogue, active.store, pointer.node_id, event_time)
            active.end()
            self.events.publish(DialogueEvent.DIALOGUE_ENDED, dialogue=active.name, active=active)
            self._publish_started(following)
            return following, following.current_node

        node = active.advance(pointer, event_time)
        if node is None:
            self.events.publish(DialogueEvent.DIALOGUE_ENDED, dialogue=active.name, active=active)
        else:
            self.events.publish(DialogueEvent.NODE_ENTERED, dialogue=active.name, active=active, node=node)
        return active, node

    def store_reply_input(
        self,
        active: ActiveDialogue,
        variables: Mapping[str, Any],
        event_time: datetime | None = None,
    ) -> None:
        active.store_reply_input(variables, event_time)
        self.events.publish(
            DialogueEvent.REPLY_INPUT_STORED, dialogue=active.name, active=active, variables=dict(variables)
        )
