import pytest
from pydantic import ValidationError

from talkengine.core.record import Record, get_record_type, register_record


@register_record
class Badge(Record):
    name: str
    level: int = 1


def test_record_is_frozen():
    badge = Badge(name="gold")
    with pytest.raises(ValidationError):
        badge.level = 2


def test_record_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        Badge(name="gold", color="yellow")


def test_replace_returns_copy():
    badge = Badge(name="gold")
    upgraded = badge.replace(level=3)
    assert upgraded.level == 3
    assert badge.level == 1


def test_registry():
    assert Badge.get_type_name() == "Badge"
    assert get_record_type("Badge") is Badge
    assert get_record_type("NoSuchRecord") is None


def test_builtin_records_registered():
    from talkframework.components.variables import User, Variable
    assert get_record_type("User") is User
    assert get_record_type("Variable") is Variable
