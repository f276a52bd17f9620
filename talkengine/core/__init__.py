"""
Core runtime module.

Exports:
- RuntimeConfig: Runtime configuration
- Record, register_record, get_record_type: Immutable record base
- EventBus, Event, DialogueEvent, ScriptEvent: Event system
"""

from talkengine.core.config import RuntimeConfig
from talkengine.core.record import Record, register_record, get_record_type
from talkengine.core.events import EventBus, Event, DialogueEvent, ScriptEvent

__all__ = [
    # Config
    "RuntimeConfig",
    # Records
    "Record",
    "register_record",
    "get_record_type",
    # Events
    "EventBus",
    "Event",
    "DialogueEvent",
    "ScriptEvent",
]
