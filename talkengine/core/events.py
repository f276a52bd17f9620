"""
Typed event bus for dialogue lifecycle notifications.

Event types are Enum members so subscribers never match on strings.
The bus is used by the dialogue manager and the script database to
announce what happened; it is not used for variable changes, which
go through the variable store's own listeners.

Usage:
    bus = EventBus()
    bus.subscribe(DialogueEvent.NODE_ENTERED, on_node)
    bus.publish(DialogueEvent.NODE_ENTERED, dialogue="intro", node=node)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class DialogueEvent(Enum):
    """Events published while dialogues run."""
    DIALOGUE_STARTED = auto()
    NODE_ENTERED = auto()
    REPLY_SELECTED = auto()
    REPLY_INPUT_STORED = auto()
    DIALOGUE_ENDED = auto()


class ScriptEvent(Enum):
    """Events published while scripts are loaded."""
    SCRIPT_LOADED = auto()
    SCRIPT_FAILED = auto()
    LOAD_COMPLETED = auto()


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Keyword data given to publish()
        consumed: Set by a handler to stop propagation
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Publish/subscribe dispatcher.

    Features:
    - Priority ordering (higher first)
    - Weak references by default
    - One-shot handlers
    - Consumption stops propagation
    - Events published from inside a handler are queued
    """

    def __init__(self):
        # event type -> [(priority, handler ref, one_shot)]
        self._handlers: dict[Enum, list[tuple[int, Any, bool]]] = {}
        self._pending: list[Event] = []
        self._dispatching = False

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = True,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Callback taking the Event
            priority: Higher priority handlers are called first
            one_shot: Remove the handler after its first call
            weak: Hold the handler through a weak reference
        """
        if weak:
            handler_ref = WeakMethod(handler) if hasattr(handler, '__self__') else ref(handler)
        else:
            handler_ref = handler

        handlers = self._handlers.setdefault(event_type, [])
        position = len(handlers)
        for i, (existing, _, _) in enumerate(handlers):
            if priority > existing:
                position = i
                break
        handlers.insert(position, (priority, handler_ref, one_shot))

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        self._handlers[event_type] = [
            entry for entry in handlers
            if self._resolve(entry[1]) != handler
        ]

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Publish an event.

        Returns:
            The Event object (check .consumed to see if it was handled)
        """
        event = Event(type=event_type, data=data)
        if self._dispatching:
            self._pending.append(event)
        else:
            self._dispatch(event)
        return event

    def clear(self, event_type: Enum | None = None) -> None:
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def handler_count(self, event_type: Enum) -> int:
        return len(self._handlers.get(event_type, []))

    def _dispatch(self, event: Event) -> None:
        handlers = self._handlers.get(event.type)
        if not handlers:
            return

        self._dispatching = True
        stale = set()
        try:
            # Iterate a copy, handlers may (un)subscribe while running
            for entry in list(handlers):
                _, handler_ref, one_shot = entry
                handler = self._resolve(handler_ref)
                if handler is None:
                    stale.add(id(entry))
                    continue

                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Error in event handler for {event.type}")

                if one_shot:
                    stale.add(id(entry))
                if event.consumed:
                    break

            if stale and event.type in self._handlers:
                self._handlers[event.type] = [
                    entry for entry in self._handlers[event.type]
                    if id(entry) not in stale
                ]
        finally:
            self._dispatching = False

        while self._pending:
            self._dispatch(self._pending.pop(0))

    @staticmethod
    def _resolve(handler_ref: Any) -> EventHandler | None:
        if isinstance(handler_ref, (ref, WeakMethod)):
            return handler_ref()
        return handler_ref
