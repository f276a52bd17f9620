"""
Variable store - thread-safe, observable per-user variables.

The store owns one Variable snapshot per name. Writers replace the
snapshot; nothing is mutated in place. Change listeners are told
about every notifying write with a single list of changes.

Locking:
- the name -> Variable map is guarded by one lock
- the listener list is guarded by a second lock
- listeners run after both locks are released, on a copy of the
  listener list taken at notification time

A listener that raises stops the fan-out and the exception reaches
the writer. A listener added or removed during a fan-out may miss or
receive that change.

Usage:
    store = VariableStore(User(id="alice"))
    store.add_listener(lambda store, changes: print(changes))
    store.set_value("mood", "happy", source=ChangeSource.WEB_SERVICE)

    bindings = store.bindings(source=ChangeSource.SCRIPT)
    bindings["mood"]            # "happy"
    bindings.update(a=1, b=2)   # one Put change for both
"""

from __future__ import annotations

import logging
import threading
from collections.abc import MutableMapping
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Mapping

from talkframework.components.variables import (
    ChangeSource,
    Clear,
    Put,
    Remove,
    User,
    Variable,
    VariableStoreChange,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[["VariableStore", list[VariableStoreChange]], None]


class VariableStore:
    """Variables of one user."""

    def __init__(self, user: User, variables: Iterable[Variable] = ()):
        self._user = user
        self._variables: dict[str, Variable] = {v.name: v for v in variables}
        self._variables_lock = threading.Lock()
        self._listeners: list[ChangeListener] = []
        self._listeners_lock = threading.Lock()

    @property
    def user(self) -> User:
        return self._user

    @user.setter
    def user(self, user: User) -> None:
        self._user = user

    # Listeners

    def add_listener(self, listener: ChangeListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> bool:
        with self._listeners_lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
            return True

    def _notify(self, *changes: VariableStoreChange) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(self, list(changes))

    # Retrieval

    def get(self, name: str) -> Variable | None:
        with self._variables_lock:
            return self._variables.get(name)

    def get_value(self, name: str) -> Any:
        variable = self.get(name)
        return None if variable is None else variable.value

    def variables(self) -> list[Variable]:
        with self._variables_lock:
            return list(self._variables.values())

    def names(self) -> list[str]:
        with self._variables_lock:
            return list(self._variables)

    def sorted_names(self) -> list[str]:
        return sorted(self.names())

    def snapshot(self) -> dict[str, Any]:
        """Copy of the current raw values, disconnected from the store."""
        with self._variables_lock:
            return {name: v.value for name, v in self._variables.items()}

    def __contains__(self, name: object) -> bool:
        with self._variables_lock:
            return name in self._variables

    def __len__(self) -> int:
        with self._variables_lock:
            return len(self._variables)

    # Modification

    def set_value(
        self,
        name: str,
        value: Any,
        notify: bool = True,
        event_time: datetime | None = None,
        source: ChangeSource = ChangeSource.UNKNOWN,
    ) -> Variable:
        event_time = self._event_time(event_time)
        variable = Variable.at(name, value, event_time)
        with self._variables_lock:
            self._variables[name] = variable
        logger.debug(f"Set ${name} = {value!r} (user {self._user.id}, {source.value})")
        if notify:
            self._notify(Put(variables=(variable,), time=event_time, source=source))
        return variable

    def remove(
        self,
        name: str,
        notify: bool = True,
        event_time: datetime | None = None,
        source: ChangeSource = ChangeSource.UNKNOWN,
    ) -> Variable | None:
        """Remove a variable. Returns the removed snapshot, or None if absent."""
        with self._variables_lock:
            removed = self._variables.pop(name, None)
        if removed is None:
            return None
        logger.debug(f"Removed ${name} (user {self._user.id}, {source.value})")
        if notify:
            self._notify(Remove(names=(name,), time=self._event_time(event_time), source=source))
        return removed

    def add_all(
        self,
        values: Mapping[str, Any],
        notify: bool = True,
        event_time: datetime | None = None,
        source: ChangeSource = ChangeSource.UNKNOWN,
    ) -> list[Variable]:
        """Write several variables at once, reported as a single Put change."""
        event_time = self._event_time(event_time)
        added = [Variable.at(name, value, event_time) for name, value in values.items()]
        with self._variables_lock:
            for variable in added:
                self._variables[variable.name] = variable
        logger.debug(f"Set {len(added)} variables (user {self._user.id}, {source.value})")
        if notify:
            self._notify(Put(variables=tuple(added), time=event_time, source=source))
        return added

    def clear(
        self,
        notify: bool = True,
        event_time: datetime | None = None,
        source: ChangeSource = ChangeSource.UNKNOWN,
    ) -> None:
        with self._variables_lock:
            self._variables.clear()
        logger.debug(f"Cleared variables (user {self._user.id}, {source.value})")
        if notify:
            self._notify(Clear(time=self._event_time(event_time), source=source))

    def bindings(
        self,
        notify: bool = True,
        event_time: datetime | None = None,
        source: ChangeSource = ChangeSource.UNKNOWN,
    ) -> VariableBindings:
        """Live mapping view of this store, usable as expression bindings."""
        return VariableBindings(self, notify, event_time, source)

    def _event_time(self, event_time: datetime | None) -> datetime:
        if event_time is None:
            return self._user.now()
        return event_time


class VariableBindings(MutableMapping):
    """
    Mapping of name -> raw value that reads and writes through to a store.

    There is no local copy: every lookup, write and iteration goes to
    the store under its lock, and every write carries the notify flag,
    event time and source the view was created with.
    """

    def __init__(
        self,
        store: VariableStore,
        notify: bool,
        event_time: datetime | None,
        source: ChangeSource,
    ):
        self._store = store
        self.notify = notify
        self.event_time = event_time
        self.source = source

    @property
    def store(self) -> VariableStore:
        return self._store

    def __getitem__(self, name: str) -> Any:
        variable = self._store.get(name)
        if variable is None:
            raise KeyError(name)
        return variable.value

    def __setitem__(self, name: str, value: Any) -> None:
        self._store.set_value(name, value, self.notify, self.event_time, self.source)

    def __delitem__(self, name: str) -> None:
        if self._store.remove(name, self.notify, self.event_time, self.source) is None:
            raise KeyError(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._store.names())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, name: object) -> bool:
        return name in self._store

    def update(self, other: Mapping[str, Any] | Iterable[tuple[str, Any]] = (), /, **kwargs: Any) -> None:
        values = dict(other)
        values.update(kwargs)
        self._store.add_all(values, self.notify, self.event_time, self.source)

    def clear(self) -> None:
        self._store.clear(self.notify, self.event_time, self.source)

    def __repr__(self) -> str:
        return f"VariableBindings({self._store.snapshot()!r})"
