import pytest

from talkframework.dialog.commands import (
    ActionCommand,
    IfCommand,
    InputSetCommand,
    InputTextCommand,
    InputTimeCommand,
    RandomCommand,
    SetCommand,
)
from talkframework.dialog.errors import (
    DuplicateClauseError,
    InvalidAttributeError,
    ScriptParseError,
    UnknownCommandError,
    UnterminatedBlockError,
)
from talkframework.dialog.model import CommandSegment, ExternalNodePointer, InternalNodePointer, TextSegment
from talkframework.dialog.template import TextTemplate, VariablePart


def test_text_body(parse_body):
    body = parse_body("Hello $name!\nHow are you?\n")
    assert len(body.segments) == 1
    assert body.segments[0].text == TextTemplate.of("Hello ", VariablePart("name"), "!\nHow are you?")
    assert body.replies == []


def test_set_command(parse_body):
    body = parse_body("<<set $a = $a + 1>>")
    (command,) = body.commands
    assert isinstance(command, SetCommand)
    assert command.variable == "a"
    assert command.read_variables() == {"a"}
    assert command.write_variables() == {"a"}


def test_action_command(parse_body):
    body = parse_body('<<action type="image" value="$url" alt="A $thing">>')
    (command,) = body.commands
    assert isinstance(command, ActionCommand)
    assert command.action_type == "image"
    assert command.value == TextTemplate.variable("url")
    assert command.parameters == {"alt": TextTemplate.of("A ", VariablePart("thing"))}
    assert command.read_variables() == {"url", "thing"}


def test_if_command(parse_body):
    body = parse_body("""\
        <<if $mood == "happy">>
        Great!
        <<elseif $mood == "sad">>
        Oh no.
        <<else>>
        Hm.
        <<endif>>
        """)
    (command,) = body.commands
    assert isinstance(command, IfCommand)
    assert len(command.clauses) == 2
    assert command.clauses[0].body.text() == "Great!"
    assert command.clauses[1].body.text() == "Oh no."
    assert command.else_body.text() == "Hm."


def test_nested_blocks_match_innermost(parse_body):
    body = parse_body("""\
        <<if $a>>
        <<if $b>>
        both
        <<endif>>
        only a
        <<endif>>
        """)
    (outer,) = body.commands
    inner_body = outer.clauses[0].body
    (inner,) = inner_body.commands
    assert isinstance(inner, IfCommand)
    assert inner.clauses[0].body.text() == "both"
    assert isinstance(inner_body.segments[-1], TextSegment)
    assert str(inner_body.segments[-1].text).strip() == "only a"


def test_random_command(parse_body):
    body = parse_body("""\
        <<random>>
        A
        <<or weight="0.5">>
        B
        <<or weight="2">>
        C
        <<endrandom>>
        """)
    (command,) = body.commands
    assert isinstance(command, RandomCommand)
    assert [c.weight for c in command.clauses] == [1.0, 0.5, 2.0]
    assert command.total_weight == 3.5


def test_replies_numbered_in_order(parse_body):
    body = parse_body("""\
        Pick one.
        <<if $vip>>
        [[VIP lounge|Lounge]]
        <<endif>>
        [[Yes|Next]]
        [[No|End]]
        """)
    assert [r.reply_id for r in body.replies] == [2, 3]
    assert body.find_reply(1).statement.text() == "VIP lounge"
    assert body.find_reply(3).pointer == InternalNodePointer("End")
    assert body.find_reply(3).ends_dialogue
    assert body.find_reply(4) is None


def test_reply_sections(parse_body):
    body = parse_body("[[Sure|Next|<<set $agreed = true>><<action type=\"link\" value=\"x\">>]]")
    (reply,) = body.replies
    assert reply.statement.text() == "Sure"
    assert reply.pointer == InternalNodePointer("Next")
    assert [type(c) for c in reply.commands] == [SetCommand, ActionCommand]


def test_autoforward_reply(parse_body):
    body = parse_body("Wait...\n[[Next]]")
    (reply,) = body.replies
    assert reply.is_autoforward
    assert reply.statement is None


def test_input_in_reply(parse_body):
    body = parse_body('[[My name is <<input type="text" value="$name" max="20" capWords="true">>|Next]]')
    (reply,) = body.replies
    segments = reply.statement.segments
    assert isinstance(segments[0], TextSegment)
    assert isinstance(segments[1], CommandSegment)
    command = segments[1].command
    assert isinstance(command, InputTextCommand)
    assert command.variable == "name"
    assert command.max == 20
    assert command.cap_words is True
    assert command.allow_numbers is True
    assert reply.write_variables() == {"name"}


def test_input_set(parse_body):
    body = parse_body(
        '[[<<input type="set" value1="$apples" option1="Apples" value2="$pears" option2="Pears">>|Next]]'
    )
    command = body.replies[0].statement.commands[0]
    assert isinstance(command, InputSetCommand)
    assert [o.variable for o in command.options] == ["apples", "pears"]
    assert command.parameters()["options"][1] == {"variableName": "pears", "text": "Pears"}


def test_input_time_normalizes(parse_body):
    body = parse_body('[[<<input type="time" value="$t" startTime="09:05:30" maxTime="NOW">>|Next]]')
    command = body.replies[0].statement.commands[0]
    assert isinstance(command, InputTimeCommand)
    assert command.start_time == TextTemplate.of("09:05")
    assert command.max_time == TextTemplate.of("now")
    assert command.granularity_minutes == 1


def test_external_pointer(parse_body):
    body = parse_body("[[Bye|../common/bye.start]]", dialogue_name="quests/intro")
    pointer = body.replies[0].pointer
    assert isinstance(pointer, ExternalNodePointer)
    assert pointer.absolute_dialogue == "common/bye"
    assert pointer.node_id == "start"
    assert pointer.to_script() == "../common/bye.start"


def test_external_pointer_above_root(parse_body):
    with pytest.raises(ScriptParseError) as info:
        parse_body("[[Bye|../bye.start]]", dialogue_name="intro")
    assert info.value.message.startswith("Invalid node pointer in reply")


@pytest.mark.parametrize("text,error,message", [
    ("<<foo>>", UnknownCommandError, "Unknown command: foo"),
    ('<<input type="text" value="$a">>', UnknownCommandError, "Unexpected command: input"),
    ("<<endif>>", UnknownCommandError, "Unexpected command: endif"),
    ("<<if $a>>\nyes\n", UnterminatedBlockError, "Command \"if\" not terminated"),
    ("<<random>>\nyes\n", UnterminatedBlockError, "Command \"random\" not terminated"),
    ("<<if $a>>a<<else>>b<<else>>c<<endif>>", DuplicateClauseError, "Found more than one \"else\""),
    ("<<if $a>>a<<else>>b<<elseif $b>>c<<endif>>", DuplicateClauseError, "Found \"elseif\" after \"else\""),
    ("<<set $a + 1>>", ScriptParseError, "Expression in \"set\" command is not an assignment"),
    ("<<set $a = $b = 1>>", ScriptParseError,
     "Found assignment expression in value operand of \"set\" command"),
    ("<<if $a = 1>>x<<endif>>", ScriptParseError, "Found assignment expression in \"if\" command"),
    ("<<if>>x<<endif>>", ScriptParseError, "Expression not found in command \"if\""),
    ("<<if $a>>x<<endif $b>>", ScriptParseError, "Unexpected content after command name \"endif\""),
    ('<<action type="sound" value="x">>', InvalidAttributeError, "Invalid value for attribute \"type\": sound"),
    ('<<action type="image">>', InvalidAttributeError, "Required attribute \"value\" not found"),
    ('<<action type="$t" value="x">>', InvalidAttributeError,
     "Value for attribute \"type\" is not plain text: \"$t\""),
    ('<<action type=image>>', InvalidAttributeError, "Unexpected text after ="),
    ('<<action type>>', InvalidAttributeError, "Character = not found after attribute name"),
    ('<<random weight="-1">>a<<endrandom>>', InvalidAttributeError, "Value for attribute \"weight\" < 0.0: -1.0"),
    ("[[A|Next]]\nmore text", ScriptParseError, "Found content after reply"),
    ("[[A|Next]]\n<<set $a = 1>>", ScriptParseError, "Found << after reply"),
    ("[[Next]]\n[[End]]", ScriptParseError, "Found more than one autoforward reply"),
    ("[[A|B|C|D]]", ScriptParseError, "Exceeded maximum number of 3 sections"),
    ("[[A|]]", ScriptParseError, "Empty node pointer in reply"),
    ("[[A|no such]]", ScriptParseError, "Invalid node pointer in reply: no such"),
    ("[[A|Next|text]]", ScriptParseError, "Expected <<, found token: TEXT"),
    ("[[A|Next|<<if $a>><<endif>>]]", UnknownCommandError, "Unexpected command: if"),
    ("[[A|Next", UnterminatedBlockError, "Reply not terminated"),
    ("<<>>", ScriptParseError, "Expected command name, found token: COMMAND_END"),
])
def test_parse_errors(parse_body, text, error, message):
    with pytest.raises(error) as info:
        parse_body(text)
    assert info.value.message == message


def test_input_set_requires_pairs(parse_body):
    with pytest.raises(InvalidAttributeError) as info:
        parse_body('[[<<input type="set" value1="$a">>|Next]]')
    assert info.value.message == "Found attribute \"value1\" without attribute \"option1\""


def test_input_time_rejects_bad_value(parse_body):
    with pytest.raises(InvalidAttributeError) as info:
        parse_body('[[<<input type="time" value="$t" minTime="25:00">>|Next]]')
    assert info.value.message == "Invalid value for attribute \"minTime\": Invalid local time value: 25:00"


def test_error_position(parse_body):
    with pytest.raises(ScriptParseError) as info:
        parse_body("Hi!\n  <<foo>>")
    assert (info.value.line, info.value.column) == (2, 5)


def test_expression_error_position(parse_body):
    with pytest.raises(ScriptParseError) as info:
        parse_body("<<set $a = = 1>>")
    assert info.value.message.startswith("Invalid expression in command")
    assert (info.value.line, info.value.column) == (1, 12)


def test_unterminated_if_reported_at_opener(parse_body):
    with pytest.raises(UnterminatedBlockError) as info:
        parse_body("text\n<<if $a>>\n<<if $b>>\n<<endif>>\n")
    assert (info.value.line, info.value.column) == (2, 1)


@pytest.mark.parametrize("text, line", [
    ("<<if $a>>\n<<random>>x\n<<endif>>", 2),
    ("<<random>>\na\n<<if $b>>x\n<<endrandom>>", 3),
    ("<<if $a>>\n<<random>>x<<or>>y\n<<else>>z<<endif>>", 2),
])
def test_unterminated_nested_block_reported_at_inner_opener(parse_body, text, line):
    with pytest.raises(UnterminatedBlockError) as info:
        parse_body(text)
    assert info.value.line == line
    assert "not terminated" in info.value.message


@pytest.mark.parametrize("text", [
    "Hello $name!",
    "Price: 5 \\$ \\<tag\\> \\[x\\] a\\|b",
    "<<set $a = $a + 1>>$a",
    "A <<if $x > 1 && !$y>>big<<elseif $x == 1>>one<<else>>small<<endif>> C",
    "<<random>>A<<or weight=\"2\">>B<<or weight=\"0.5\">>C<<endrandom>>",
    '<<action type="image" value="http://x/$id.png" alt="say \\"hi\\"">>',
    "Pick.\n[[Yes <<input type=\"numeric\" value=\"$n\" min=\"1\">>|Next|<<set $ok = true>>]]\n[[No|End]]",
    '[[<<input type="time" value="$t" granularityMinutes="15" minTime="$from">>|common/x.start]]',
    "Wait.\n[[Next]]",
    '[[My mail: <<input type="email" value="$mail">>|Next]]',
    '[[<<input type="text" value="$nick" min="2" max="20" allowNumbers="false">>|Next]]',
    '[[<<input type="longtext" value="$story" max="500" allowSpecialCharacters="false">>|Next]]',
    '[[<<input type="set" value1="$tea" option1="Tea" value2="$coffee" option2="Coffee for $name">>|Next]]',
])
def test_round_trip(parse_body, text):
    body = parse_body(text)
    again = parse_body(body.to_script())
    assert again == body
    assert again.to_script() == body.to_script()
