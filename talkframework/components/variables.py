"""
Variable records.

Provides:
- ChangeSource: which subsystem caused a variable change
- User: owner of a variable store (id and time zone)
- Variable: immutable snapshot of one variable
- VariableStoreChange and its variants Put, Remove, Clear
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator

from talkengine.core.record import Record, register_record


class ChangeSource(Enum):
    """Audit tag attached to every variable store change."""
    UNKNOWN = "unknown"
    SCRIPT = "script"
    INPUT_REPLY = "input-reply"
    WEB_SERVICE = "web-service"
    EXTERNAL_VARIABLE_SERVICE = "external-variable-service"


@register_record
class User(Record):
    """The user a variable store belongs to."""
    id: str
    time_zone: str = "UTC"

    @field_validator("time_zone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown time zone: {value}") from e
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    def now(self) -> datetime:
        return datetime.now(self.zone)


@register_record
class Variable(Record):
    """
    Snapshot of a variable value.

    Attributes:
        name: Variable name without the leading $
        value: Raw value (None, bool, number, str, list or dict)
        updated_time: Unix time of the write in milliseconds
        updated_time_zone: IANA zone of the event time
    """
    name: str
    value: Any = None
    updated_time: int = 0
    updated_time_zone: str = "UTC"

    @classmethod
    def at(cls, name: str, value: Any, event_time: datetime) -> Variable:
        """Build a snapshot stamped with the given (zone-aware) event time."""
        zone = event_time.tzinfo
        # Fixed offsets have no IANA name, the instant is kept in UTC
        zone_name = getattr(zone, "key", None) or "UTC"
        return cls(
            name=name,
            value=value,
            updated_time=int(event_time.timestamp() * 1000),
            updated_time_zone=zone_name,
        )

    @property
    def updated_at(self) -> datetime:
        return datetime.fromtimestamp(self.updated_time / 1000, ZoneInfo(self.updated_time_zone))


class VariableStoreChange(Record):
    """Base for the three change kinds."""
    time: datetime
    source: ChangeSource = ChangeSource.UNKNOWN


class Put(VariableStoreChange):
    """One or more variables were written."""
    variables: tuple[Variable, ...] = Field(default_factory=tuple)

    @property
    def mapping(self) -> dict[str, Any]:
        return {v.name: v.value for v in self.variables}


class Remove(VariableStoreChange):
    """One or more variables were removed."""
    names: tuple[str, ...] = Field(default_factory=tuple)


class Clear(VariableStoreChange):
    """All variables were removed."""
