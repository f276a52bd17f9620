"""
Record base class for immutable runtime data.

Records are pure data containers with NO logic that changes state.
A record is never modified after creation: to change a value, build
a new record (model_copy(update=...)) and replace the old one.

Usage:
    class Variable(Record):
        name: str
        value: Any = None
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class Record(BaseModel):
    """
    Base class for all frozen records.

    Pydantic gives us:
    - Validation on construction
    - JSON serialization (used by the save manager)
    - Hashable, immutable instances
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )

    # Name used in persisted documents
    _type_name: ClassVar[str] = ""

    @classmethod
    def get_type_name(cls) -> str:
        return cls._type_name or cls.__name__

    def replace(self, **changes) -> Record:
        """Return a copy with the given fields changed."""
        return self.model_copy(update=changes)


_record_registry: dict[str, type[Record]] = {}


def register_record(cls: type[Record]) -> type[Record]:
    """
    Decorator registering a record type for deserialization.

    Usage:
        @register_record
        class User(Record):
            ...
    """
    _record_registry[cls.get_type_name()] = cls
    return cls


def get_record_type(name: str) -> type[Record] | None:
    return _record_registry.get(name)
