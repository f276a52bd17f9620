import threading

import pytest

from talkframework.components.variables import ChangeSource, Clear, Put, Remove
from talkframework.systems.variables import VariableStore


@pytest.fixture
def changes(store):
    received = []
    store.add_listener(lambda s, c: received.append(c))
    return received


def test_set_and_get(store):
    store.set_value("mood", "happy")
    assert store.get_value("mood") == "happy"
    assert store.get("mood").name == "mood"
    assert store.get_value("missing") is None
    assert "mood" in store
    assert len(store) == 1


def test_set_replaces_snapshot(store):
    first = store.set_value("a", 1)
    store.set_value("a", 2)
    assert first.value == 1
    assert store.get_value("a") == 2


def test_set_notifies_put(store, changes, event_time):
    store.set_value("a", 1, event_time=event_time, source=ChangeSource.WEB_SERVICE)
    assert len(changes) == 1
    (change,) = changes[0]
    assert isinstance(change, Put)
    assert change.mapping == {"a": 1}
    assert change.time == event_time
    assert change.source == ChangeSource.WEB_SERVICE


def test_notify_false_is_silent(store, changes):
    store.set_value("a", 1, notify=False)
    store.remove("a", notify=False)
    store.clear(notify=False)
    assert changes == []


def test_remove(store, changes):
    store.set_value("a", 1, notify=False)
    removed = store.remove("a")
    assert removed.value == 1
    assert "a" not in store
    assert isinstance(changes[0][0], Remove)
    assert changes[0][0].names == ("a",)


def test_remove_missing_returns_none(store, changes):
    assert store.remove("nothing") is None
    assert changes == []


def test_add_all_coalesces(store, changes):
    store.add_all({"a": 1, "b": 2})
    assert len(changes) == 1
    assert changes[0][0].mapping == {"a": 1, "b": 2}


def test_clear(store, changes):
    store.add_all({"a": 1, "b": 2}, notify=False)
    store.clear(source=ChangeSource.EXTERNAL_VARIABLE_SERVICE)
    assert len(store) == 0
    assert isinstance(changes[0][0], Clear)
    assert changes[0][0].source == ChangeSource.EXTERNAL_VARIABLE_SERVICE


def test_remove_listener(store):
    received = []
    def listener(s, c):
        received.append(c)

    store.add_listener(listener)
    assert store.remove_listener(listener)
    assert not store.remove_listener(listener)
    store.set_value("a", 1)
    assert received == []


def test_listener_error_reaches_writer(store):
    def broken(s, c):
        raise RuntimeError("listener failed")

    store.add_listener(broken)
    with pytest.raises(RuntimeError):
        store.set_value("a", 1)
    # The write itself happened before the fan-out
    assert store.get_value("a") == 1


def test_listener_can_read_store(store):
    seen = []
    store.add_listener(lambda s, c: seen.append(s.get_value("a")))
    store.set_value("a", 5)
    assert seen == [5]


def test_snapshot_is_detached(store):
    store.set_value("a", 1)
    snapshot = store.snapshot()
    snapshot["a"] = 2
    snapshot["b"] = 3
    assert store.get_value("a") == 1
    assert "b" not in store


def test_bindings_read_write_through(store, changes):
    bindings = store.bindings(source=ChangeSource.SCRIPT)
    bindings["a"] = 1
    assert store.get_value("a") == 1
    assert bindings["a"] == 1
    assert bindings.get("missing") is None
    assert changes[0][0].source == ChangeSource.SCRIPT

    del bindings["a"]
    assert "a" not in store
    with pytest.raises(KeyError):
        del bindings["a"]
    with pytest.raises(KeyError):
        bindings["a"]


def test_bindings_update_is_one_put(store, changes):
    bindings = store.bindings()
    bindings.update({"a": 1}, b=2)
    assert len(changes) == 1
    assert changes[0][0].mapping == {"a": 1, "b": 2}


def test_bindings_notify_flag(store, changes):
    bindings = store.bindings(notify=False)
    bindings["a"] = 1
    bindings.clear()
    assert changes == []


def test_bindings_iterate(store):
    store.add_all({"b": 2, "a": 1})
    bindings = store.bindings()
    assert sorted(bindings) == ["a", "b"]
    assert len(bindings) == 2
    assert dict(bindings) == {"a": 1, "b": 2}


def test_sorted_names(store):
    store.add_all({"b": 2, "a": 1, "c": 3})
    assert store.sorted_names() == ["a", "b", "c"]


def test_concurrent_writes(store):
    def writer(prefix):
        for i in range(200):
            store.set_value(f"{prefix}{i}", i)

    threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 800
