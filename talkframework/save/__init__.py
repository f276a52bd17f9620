"""
Variable persistence.

Exports:
- VariableSaveManager: Save/load per-user variable stores
- SaveEvent, SaveError
"""

from talkframework.save.manager import (
    SNAPSHOT_SCHEMA,
    SaveError,
    SaveEvent,
    VariableSaveManager,
)

__all__ = [
    "VariableSaveManager",
    "SaveEvent",
    "SaveError",
    "SNAPSHOT_SCHEMA",
]
