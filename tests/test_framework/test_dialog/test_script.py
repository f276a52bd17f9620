from textwrap import dedent

import pytest

from talkframework.dialog.errors import DialogueParseError, NodeParseError, ScriptParseError
from talkframework.dialog.script import DialogueParser, main, parse_dialogue_file

INTRO = """\
title: Start
speaker: Bob
mood: happy   // free headers become tags
---
Hello $name!
<<set $visits = $visits + 1>>
[[Hi Bob|Next]]
[[Bye|End]]
===

title: Next
speaker: Bob
---
You visited $visits times.
[[Go on|common/bye.start]]
===
"""


def test_parse_dialogue(parse_script):
    dialogue = parse_script(INTRO, name="intro")
    assert dialogue.name == "intro"
    assert dialogue.node_count == 2
    start = dialogue.start_node
    assert start.title == "Start"
    assert start.speaker == "Bob"
    assert start.header.tag("mood") == "happy"
    assert [r.reply_id for r in start.replies] == [1, 2]
    assert dialogue.get_node("next") is dialogue.get_node("Next")


def test_dialogue_statistics(parse_script):
    dialogue = parse_script(INTRO, name="intro")
    assert dialogue.speakers == {"Bob"}
    assert dialogue.variables_needed == {"name", "visits"}
    assert dialogue.variables_written == {"visits"}
    assert dialogue.dialogues_referenced == {"common/bye"}


def test_summary(parse_script):
    summary = parse_script(INTRO, name="intro").summary()
    assert "Dialogue Name: intro" in summary
    assert "Number of Nodes: 2" in summary
    assert "Variables needed (2):\n  - name\n  - visits" in summary


def test_end_node_needs_no_speaker(parse_script):
    dialogue = parse_script("""\
        title: Start
        speaker: A
        ---
        [[End]]
        ===
        title: End
        ---
        ===
        """)
    assert dialogue.get_node("End").speaker is None


def test_node_round_trip(parse_script):
    dialogue = parse_script(INTRO, name="intro")
    script = "\n".join(node.to_script() for node in dialogue.nodes)
    again = parse_script(script, name="intro")
    for node in dialogue.nodes:
        assert again.get_node(node.title).body == node.body
        assert again.get_node(node.title).header == node.header


def errors_of(text, name="test"):
    result = DialogueParser(name, dedent(text)).read_dialogue()
    assert not result.ok
    return result.errors


def test_missing_start_node():
    (error,) = errors_of("""\
        title: Other
        speaker: A
        ---
        Hi
        ===
        """)
    assert isinstance(error, ScriptParseError)
    assert error.message == "Node with title \"Start\" not found"


def test_pointer_to_missing_node():
    (error,) = errors_of("""\
        title: Start
        speaker: A
        ---
        [[Go|Nowhere]]
        ===
        """)
    assert isinstance(error, NodeParseError)
    assert error.node_title == "Start"
    assert error.cause.message == "Found reply with pointer to non-existing node: Nowhere"
    assert (error.line, error.column) == (4, 6)


def test_errors_collected_from_all_nodes():
    errors = errors_of("""\
        title: Start
        speaker: A
        ---
        <<foo>>
        ===
        title: Second
        speaker: A
        ---
        <<if $a>>
        ===
        title: Third
        speaker: A
        ---
        Fine.
        ===
        """)
    assert [e.node_title for e in errors] == ["Start", "Second"]
    assert errors[0].cause.message == "Unknown command: foo"
    assert errors[1].cause.message == "Command \"if\" not terminated"
    assert errors[1].line == 9


@pytest.mark.parametrize("text,message", [
    ("title: Start\nspeaker: A\nHi\n===\n", "Character : not found in header line"),
    ("title: Start\n---\nHi\n===\n", "Required header \"speaker\" not found"),
    ("speaker: A\n---\nHi\n===\n", "Required header \"title\" not found"),
    ("title: Start\nspeaker:\n---\nHi\n===\n", "Found empty speaker"),
    ("title: Start\nspeaker: A\nspeaker: B\n---\n===\n", "Found duplicate header: speaker"),
    ("title: Bad Title\nspeaker: A\n---\n===\n", "Invalid node title: Bad Title"),
    ("title: Start\nspeaker: A\n===\n", "End of header not found"),
    ("title: Start\nspeaker: A\n", "Found incomplete node at end of file"),
    ("title: Start\nspeaker: A\n---\n[[End]]\n===\ntitle: End\n---\nbye\n===\n",
     "Node \"End\" must have an empty body"),
])
def test_node_errors(text, message):
    errors = errors_of(text)
    assert errors[0].cause.message == message


def test_duplicate_title():
    errors = errors_of("""\
        title: Start
        speaker: A
        ---
        ===
        title: start
        speaker: A
        ---
        ===
        """)
    assert errors[0].cause.message == "Found duplicate node title: start"


def test_invalid_dialogue_name():
    errors = errors_of("title: Start\nspeaker: A\n---\n===\n", name="bad name")
    assert str(errors[0]) == "Invalid dialogue name: bad name"


def test_parse_raises_with_all_errors():
    parser = DialogueParser("test", "title: Start\nspeaker: A\n---\n<<foo>>\n===\n")
    with pytest.raises(DialogueParseError) as info:
        parser.parse()
    assert info.value.dialogue_name == "test"
    assert len(info.value.errors) == 1
    assert "Unknown command: foo" in str(info.value)


def test_parse_dialogue_file(tmp_path):
    path = tmp_path / "intro.dlb"
    path.write_text(INTRO, encoding="utf-8")
    dialogue = parse_dialogue_file(path)
    assert dialogue.name == "intro"


def test_main_prints_summary(tmp_path, capsys):
    path = tmp_path / "intro.dlb"
    path.write_text(INTRO, encoding="utf-8")
    assert main([str(path)]) == 0
    assert "Number of Nodes: 2" in capsys.readouterr().out


def test_main_reports_errors(tmp_path, capsys):
    path = tmp_path / "broken.dlb"
    path.write_text("title: Start\nspeaker: A\n---\n<<foo>>\n===\n", encoding="utf-8")
    assert main([str(path)]) == 1
    assert "Unknown command: foo" in capsys.readouterr().err


def test_main_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.dlb")]) == 1
