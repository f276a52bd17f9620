import os
import random
import sys
from datetime import datetime, timezone
from textwrap import dedent

import pytest

# Ensure talkengine/talkframework can be imported
sys.path.append(os.getcwd())


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from talkengine.core.events import EventBus
    return EventBus()


@pytest.fixture
def user():
    from talkframework.components.variables import User
    return User(id="alice", time_zone="UTC")


@pytest.fixture
def store(user):
    """Empty variable store of user alice."""
    from talkframework.systems.variables import VariableStore
    return VariableStore(user)


@pytest.fixture
def event_time():
    return datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def parse_body():
    """Parse node body text into a NodeBody."""
    from talkframework.dialog.parser import BodyParser, NodeState
    from talkframework.dialog.tokenizer import BodyTokenizer

    def parse(text, dialogue_name="test"):
        tokenizer = BodyTokenizer()
        tokens = []
        for number, line in enumerate(dedent(text).splitlines(keepends=True), start=1):
            tokens.extend(tokenizer.read_body_tokens(line, number))
        return BodyParser(NodeState(dialogue_name)).parse(tokens)

    return parse


@pytest.fixture
def parse_script():
    """Parse a whole dialogue script."""
    from talkframework.dialog.script import parse_dialogue

    def parse(text, name="test"):
        return parse_dialogue(name, dedent(text))

    return parse
