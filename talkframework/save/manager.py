"""
Variable persistence - per-user variable snapshots.

Provides:
- Save/load a user's VariableStore to a JSON file
- Schema validation of loaded files (jsonschema)
- Save integrity validation (checksum)
- Event publishing for save/load operations

File layout:
    {
      "version": "1.0",
      "saved_at": "2026-01-01T12:00:00+00:00",
      "user": {"type": "User", "data": {"id": "alice", "time_zone": "UTC"}},
      "variables": [{"type": "Variable", "data": {...}}, ...],
      "checksum": "<base64 sha256 of the rest>"
    }
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import re
from datetime import datetime, timezone
from enum import Enum, auto
from pathlib import Path
from typing import Any

import jsonschema
from pydantic import ValidationError

from talkengine.core.config import RuntimeConfig
from talkengine.core.events import EventBus
from talkengine.core.record import Record, get_record_type
from talkframework.components.variables import User, Variable
from talkframework.systems.variables import VariableStore

logger = logging.getLogger(__name__)


class SaveEvent(Enum):
    """Save system events."""
    SAVE_COMPLETED = auto()
    SAVE_FAILED = auto()
    LOAD_COMPLETED = auto()
    LOAD_FAILED = auto()


class SaveError(Exception):
    """A variable snapshot could not be written or read back."""


_RECORD_SCHEMA = {
    "type": "object",
    "required": ["type", "data"],
    "properties": {
        "type": {"type": "string", "minLength": 1},
        "data": {"type": "object"},
    },
    "additionalProperties": False,
}

SNAPSHOT_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["version", "user", "variables"],
    "properties": {
        "version": {"type": "string"},
        "saved_at": {"type": "string"},
        "user": _RECORD_SCHEMA,
        "variables": {"type": "array", "items": _RECORD_SCHEMA},
        "checksum": {"type": "string"},
    },
    "additionalProperties": False,
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class VariableSaveManager:
    """
    Saves and loads variable stores, one file per user.

    Usage:
        saves = VariableSaveManager("saves", event_bus=bus)
        saves.save(store)
        store = saves.load("alice")
    """

    VERSION = "1.0"

    def __init__(
        self,
        save_path: str | Path | None = None,
        event_bus: EventBus | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.config = config if config is not None else RuntimeConfig()
        if save_path is None:
            save_path = self.config.saves_path
        self.save_path = Path(save_path)
        self.save_path.mkdir(parents=True, exist_ok=True)
        self.event_bus = event_bus

    def _get_user_path(self, user_id: str) -> Path:
        return self.save_path / f"variables_{_UNSAFE_CHARS.sub('_', user_id)}.json"

    def has_save(self, user_id: str) -> bool:
        return self._get_user_path(user_id).exists()

    # Serialization

    def serialize(self, store: VariableStore) -> dict[str, Any]:
        """Snapshot document of a store, checksum included."""
        data = {
            "version": self.VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "user": _record_to_dict(store.user),
            "variables": [
                _record_to_dict(v) for v in sorted(store.variables(), key=lambda v: v.name)
            ],
        }
        data["checksum"] = self._calculate_checksum(data)
        return data

    def deserialize(self, data: Any, validate: bool = True) -> VariableStore:
        """
        Build a store from a snapshot document.

        Raises:
            SaveError: If the document doesn't match the schema, the
                checksum or the record types
        """
        try:
            jsonschema.validate(instance=data, schema=SNAPSHOT_SCHEMA)
        except jsonschema.ValidationError as e:
            raise SaveError(f"Invalid variable snapshot: {e.message}") from e

        if validate:
            checksum = data.get("checksum")
            if checksum is None:
                raise SaveError("Variable snapshot has no checksum")
            if not self._verify_checksum(data, checksum):
                raise SaveError("Checksum validation failed")

        user = _record_from_dict(data["user"], User)
        variables = [_record_from_dict(item, Variable) for item in data["variables"]]
        return VariableStore(user, variables)

    # Files

    def save(self, store: VariableStore) -> Path:
        """
        Write the store of a user, replacing any earlier save.

        Raises:
            SaveError: If the file can't be written
        """
        user_id = store.user.id
        path = self._get_user_path(user_id)
        data = self.serialize(store)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Save failed for user {user_id}: {e}")
            if self.event_bus:
                self.event_bus.publish(SaveEvent.SAVE_FAILED, user_id=user_id, error=str(e))
            raise SaveError(f"Can't save variables of user {user_id}: {e}") from e

        logger.info(f"Saved {len(data['variables'])} variables of user {user_id} to {path}")
        if self.event_bus:
            self.event_bus.publish(SaveEvent.SAVE_COMPLETED, user_id=user_id, path=path)
        return path

    def load(self, user_id: str, validate: bool = True) -> VariableStore | None:
        """
        Load the store of a user.

        Args:
            user_id: Owner of the save
            validate: Whether to check the checksum

        Returns:
            The store, or None if the user has no save

        Raises:
            SaveError: If the file is unreadable or corrupted
        """
        path = self._get_user_path(user_id)
        if not path.exists():
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            store = self.deserialize(data, validate)
        except (OSError, ValueError, SaveError) as e:
            logger.error(f"Load failed for user {user_id}: {e}")
            if self.event_bus:
                self.event_bus.publish(SaveEvent.LOAD_FAILED, user_id=user_id, error=str(e))
            if isinstance(e, SaveError):
                raise
            raise SaveError(f"Can't load variables of user {user_id}: {e}") from e

        if store.user.id != user_id:
            logger.warning(f"Save file {path} belongs to user {store.user.id}, not {user_id}")
        logger.info(f"Loaded {len(store)} variables of user {user_id} from {path}")
        if self.event_bus:
            self.event_bus.publish(SaveEvent.LOAD_COMPLETED, user_id=user_id, store=store)
        return store

    def load_or_create(self, user_id: str, validate: bool = True) -> VariableStore:
        """
        Load the store of a user, or start an empty one.

        A new user gets the configured default time zone.

        Raises:
            SaveError: If a save exists but is unreadable or corrupted
        """
        store = self.load(user_id, validate)
        if store is None:
            logger.info(f"No save for user {user_id}, starting with no variables")
            store = VariableStore(User(id=user_id, time_zone=self.config.default_time_zone))
        return store

    def validate_save(self, user_id: str) -> bool:
        """
        Validate a save file's integrity.

        Returns:
            True if the save is valid, False if corrupted or missing
        """
        path = self._get_user_path(user_id)
        if not path.exists():
            return False
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self.deserialize(data, validate=True)
        except (OSError, ValueError, SaveError) as e:
            logger.warning(f"Save file {path} is invalid: {e}")
            return False
        return True

    def delete_save(self, user_id: str) -> bool:
        """Delete the save of a user. Returns False if there was none."""
        path = self._get_user_path(user_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted save of user {user_id}")
        return True

    # Checksum

    def _calculate_checksum(self, data: dict) -> str:
        """Calculate checksum for save data."""
        # Deterministic JSON string
        json_str = json.dumps(data, sort_keys=True, separators=(',', ':'))
        hash_bytes = hashlib.sha256(json_str.encode('utf-8')).digest()
        return base64.b64encode(hash_bytes).decode('ascii')

    def _verify_checksum(self, data: dict, expected_checksum: str) -> bool:
        data_copy = data.copy()
        data_copy.pop('checksum', None)
        return self._calculate_checksum(data_copy) == expected_checksum


def _record_to_dict(record: Record) -> dict[str, Any]:
    return {"type": record.get_type_name(), "data": record.model_dump(mode="json")}


def _record_from_dict(item: dict[str, Any], expected: type[Record]) -> Record:
    record_type = get_record_type(item["type"])
    if record_type is None:
        raise SaveError(f"Unknown record type: {item['type']}")
    if not issubclass(record_type, expected):
        raise SaveError(f"Expected record of type {expected.get_type_name()}, found: {item['type']}")
    try:
        return record_type.model_validate(item["data"])
    except ValidationError as e:
        raise SaveError(f"Invalid {item['type']} record: {e}") from e
