from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from talkframework.components.variables import ChangeSource, Put, User, Variable


def test_user_defaults_to_utc():
    user = User(id="bob")
    assert user.time_zone == "UTC"
    assert user.now().tzinfo == ZoneInfo("UTC")


def test_user_rejects_unknown_time_zone():
    with pytest.raises(ValidationError):
        User(id="bob", time_zone="Mars/Olympus")


def test_variable_at_stamps_event_time():
    when = datetime(2026, 5, 1, 12, 0, tzinfo=ZoneInfo("Europe/Berlin"))
    variable = Variable.at("mood", "happy", when)
    assert variable.updated_time == int(when.timestamp() * 1000)
    assert variable.updated_time_zone == "Europe/Berlin"
    assert variable.updated_at == when


def test_variable_at_with_fixed_offset_zone():
    when = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert Variable.at("a", 1, when).updated_time_zone == "UTC"


def test_put_mapping():
    when = datetime(2026, 5, 1, tzinfo=timezone.utc)
    change = Put(
        variables=(Variable.at("a", 1, when), Variable.at("b", 2, when)),
        time=when,
        source=ChangeSource.SCRIPT,
    )
    assert change.mapping == {"a": 1, "b": 2}
    assert change.source.value == "script"
