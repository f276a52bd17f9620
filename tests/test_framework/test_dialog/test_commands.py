import random

import pytest

from talkengine.expressions import EvaluationError
from talkframework.dialog.commands import (
    InputSetCommand,
    InputTimeCommand,
    RandomClause,
    RandomCommand,
    SetOption,
)
from talkframework.dialog.model import NodeBody
from talkframework.dialog.template import TextTemplate, VariablePart


def run(body, bindings=None, rng=None):
    output = NodeBody()
    body.execute(bindings if bindings is not None else {}, output, rng, trim=True)
    return output


def test_set_is_visible_to_later_segments(parse_body):
    body = parse_body("<<set $a = 1>>$a <<set $a = $a + 1>>$a")
    bindings = {}
    assert run(body, bindings).text() == "1 2"
    assert bindings == {"a": 2}


def test_set_keeps_inner_whitespace(parse_body):
    body = parse_body("<<set $x=1>> $x <<set $x=2>> $x")
    bindings = {}
    assert run(body, bindings).text() == "1  2"
    assert bindings == {"x": 2}


def test_if_runs_first_true_clause(parse_body):
    body = parse_body("<<if $n > 10>>big<<elseif $n > 5>>medium<<elseif $n > 0>>small<<else>>none<<endif>>")
    assert run(body, {"n": 7}).text() == "medium"
    assert run(body, {"n": 11}).text() == "big"
    assert run(body, {"n": 0}).text() == "none"


def test_if_skips_later_conditions(parse_body):
    # Evaluating the second condition would fail
    body = parse_body("<<if true>>first<<elseif 1 / 0>>second<<endif>>")
    assert run(body).text() == "first"


def test_if_skips_else_after_true_elseif(parse_body):
    body = parse_body("<<if false>>x<<elseif true>>A<<else>><<set $w = 1>>B<<endif>>")
    bindings = {}
    assert run(body, bindings).text() == "A"
    assert "w" not in bindings


def test_if_without_else_outputs_nothing(parse_body):
    body = parse_body("a<<if false>>b<<endif>>c")
    assert run(body).text() == "ac"


def test_evaluation_error_propagates(parse_body):
    body = parse_body("<<if 1 / 0>>x<<endif>>")
    with pytest.raises(EvaluationError):
        run(body)


def test_replies_only_from_taken_branch(parse_body):
    body = parse_body("""\
        <<if $vip>>
        [[Lounge|Lounge]]
        <<else>>
        [[Queue|Queue]]
        <<endif>>
        [[Leave|End]]
        """)
    output = run(body, {"vip": False})
    assert [r.reply_id for r in output.replies] == [2, 3]
    assert output.find_reply(1) is None
    assert output.find_reply(2).statement.text() == "Queue"


def test_reply_statement_resolved(parse_body):
    body = parse_body("[[I am $name|Next|<<set $introduced = true>>]]")
    bindings = {"name": "Ann"}
    output = run(body, bindings)
    (reply,) = output.replies
    assert reply.statement.text() == "I am Ann"
    # Reply set commands run only when the reply is chosen
    assert "introduced" not in bindings
    assert len(reply.commands) == 1


def test_action_resolved(parse_body):
    body = parse_body('<<action type="link" value="https://example.com/$page" title="$title">>')
    output = run(body, {"page": "help", "title": "Help"})
    (action,) = output.commands
    assert action.to_dict() == {
        "type": "link",
        "value": "https://example.com/help",
        "parameters": {"title": "Help"},
    }
    assert action.read_variables() == set()


def test_definition_unchanged_by_execution(parse_body):
    body = parse_body("Hi $name <<set $seen = true>>")
    script = body.to_script()
    run(body, {"name": "Ann"})
    assert body.to_script() == script


def test_random_distribution():
    command = RandomCommand((
        RandomClause(1.0, NodeBody()),
        RandomClause(1.0, NodeBody()),
        RandomClause(2.0, NodeBody()),
    ))
    rng = random.Random(20260101)
    draws = 100_000
    hits = sum(1 for _ in range(draws) if command.select(rng) is command.clauses[2])
    assert hits / draws == pytest.approx(0.5, abs=0.01)


def test_random_zero_weight_never_chosen():
    command = RandomCommand((
        RandomClause(0.0, NodeBody()),
        RandomClause(1.0, NodeBody()),
    ))
    rng = random.Random(7)
    assert all(command.select(rng) is command.clauses[1] for _ in range(1000))


def test_random_all_zero_picks_first():
    command = RandomCommand((RandomClause(0.0, NodeBody()), RandomClause(0.0, NodeBody())))
    assert command.select() is command.clauses[0]


def test_random_execution_reproducible(parse_body):
    body = parse_body("<<random>>a<<or>>b<<or>>c<<or>>d<<endrandom>>")
    first = [run(body, rng=random.Random(3)).text() for _ in range(5)]
    second = [run(body, rng=random.Random(3)).text() for _ in range(5)]
    assert first == second


def test_input_set_resolves_labels_and_statement(store):
    command = InputSetCommand(options=(
        SetOption("apples", TextTemplate.of("Apples from ", VariablePart("farm"))),
        SetOption("pears", TextTemplate.of("Pears")),
    ))
    resolved = command.resolve({"farm": "Hill"})
    assert resolved.options[0].text == TextTemplate.of("Apples from Hill")
    store.add_all({"apples": True, "pears": False})
    assert resolved.statement_log(store) == '["Apples from Hill"]'


def test_input_time_resolves_variables():
    command = InputTimeCommand(variable="t", min_time=TextTemplate.variable("from"))
    resolved = command.resolve({"from": "08:30:00"})
    assert resolved.min_time == TextTemplate.of("08:30")
    assert resolved.parameters() == {"variableName": "t", "granularityMinutes": 1, "minTime": "08:30"}


def test_input_time_invalid_variable_value():
    command = InputTimeCommand(variable="t", min_time=TextTemplate.variable("from"))
    with pytest.raises(EvaluationError):
        command.resolve({"from": "soon"})
