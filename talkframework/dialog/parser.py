"""
Node body parser.

Recursive descent over the tokens of one node body.

Provides:
- NodeState: per-node parse state (title, reply ids, pointer tokens)
- BodyParser: text, commands and replies into a NodeBody
- CommandParser: dispatch on command name
- ReplyParser: [[statement|pointer|commands]]

Block commands (if, random) call back into BodyParser.parse_until_clause
to read each clause body up to the next clause keyword. The keywords
that may end a clause are passed in explicitly, so an <<endif>> can
only close the innermost open <<if>>.

Usage:
    tokenizer = BodyTokenizer()
    tokens = tokenizer.read_body_tokens('Hi $name!\\n[[Bye|End]]\\n', 1)
    body = BodyParser().parse(tokens)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, NamedTuple, Sequence

from talkengine.expressions import AssignExpression, Expression, ExpressionParseError, parse_expression
from talkframework.dialog.attributes import AttributeSet, parse_attributes
from talkframework.dialog.commands import (
    DEFAULT_WEIGHT,
    ActionCommand,
    IfClause,
    IfCommand,
    InputCommand,
    InputEmailCommand,
    InputLongtextCommand,
    InputNumericCommand,
    InputSetCommand,
    InputTextCommand,
    InputTimeCommand,
    RandomClause,
    RandomCommand,
    SetCommand,
    SetOption,
    parse_local_time,
)
from talkframework.dialog.constants import (
    ACTION_TYPES,
    BODY_COMMANDS,
    DEFAULT_DIALOGUE_NAME,
    EXTERNAL_POINTER_RE,
    INPUT_TYPES,
    NODE_NAME_RE,
    REPLY_COMMANDS,
    REPLY_STATEMENT_COMMANDS,
)
from talkframework.dialog.errors import (
    DuplicateClauseError,
    InvalidAttributeError,
    ScriptParseError,
    UnknownCommandError,
    UnterminatedBlockError,
)
from talkframework.dialog.model import (
    Command,
    ExternalNodePointer,
    InternalNodePointer,
    NodeBody,
    NodePointer,
    Reply,
)
from talkframework.dialog.template import LiteralPart, TextTemplate, VariablePart
from talkframework.dialog.tokenizer import BodyToken, TokenStream, TokenType, trim_whitespace

IF_CLAUSES = ("elseif", "else", "endif")
RANDOM_CLAUSES = ("or", "endrandom")

_COMMAND_NAME_RE = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class PointerToken:
    """A reply pointer and where it was written, for dialogue-level checks."""
    node_title: str | None
    pointer: NodePointer
    token: BodyToken


@dataclass
class NodeState:
    """State shared by all parsers working on one node."""
    dialogue_name: str = DEFAULT_DIALOGUE_NAME
    title: str | None = None
    speaker: str | None = None
    speaker_line: int = 0
    speaker_column: int = 0
    pointer_tokens: list[PointerToken] = field(default_factory=list)
    _next_reply_id: int = field(default=1, init=False, repr=False)

    def next_reply_id(self) -> int:
        reply_id = self._next_reply_id
        self._next_reply_id += 1
        return reply_id

    def add_pointer_token(self, pointer: NodePointer, token: BodyToken) -> None:
        self.pointer_tokens.append(PointerToken(self.title, pointer, token))


class ClauseResult(NamedTuple):
    """
    Result of BodyParser.parse_until_clause.

    clause_token is the << that starts the clause keyword, or None if
    the tokens ran out first. When set, the stream is at the clause
    name token.
    """
    body: NodeBody
    clause_token: BodyToken | None
    clause_name: str | None


class BodyParser:
    """Parses body tokens into a NodeBody."""

    def __init__(self, node_state: NodeState | None = None):
        self.node_state = node_state if node_state is not None else NodeState()

    def parse(
        self,
        tokens: Iterable[BodyToken] | TokenStream,
        valid_commands: Sequence[str] = BODY_COMMANDS,
    ) -> NodeBody:
        """
        Parse a complete body.

        Args:
            tokens: Body tokens
            valid_commands: Names of the commands allowed in this body

        Raises:
            ScriptParseError: On any syntax error
        """
        stream = tokens if isinstance(tokens, TokenStream) else TokenStream(tokens)
        return self.parse_until_clause(stream, valid_commands, ()).body

    def parse_until_clause(
        self,
        tokens: TokenStream,
        valid_commands: Sequence[str],
        valid_clauses: Sequence[str],
        opener: BodyToken | None = None,
        opener_name: str | None = None,
    ) -> ClauseResult:
        """
        Parse until one of the clause keywords or the end of the tokens.

        opener is the << of the block being read. A clause keyword of
        another block family means that block was never closed.
        """
        body = NodeBody()
        while tokens.current is not None:
            token = tokens.current
            if token.type in (TokenType.TEXT, TokenType.VARIABLE):
                text = self._parse_text(tokens)
                if not body.replies:
                    body.add_text(text)
                elif not text.is_whitespace():
                    raise ScriptParseError("Found content after reply", token.line, token.column)
            elif token.type == TokenType.COMMAND_START:
                parser = CommandParser(valid_commands, self.node_state)
                name = parser.read_command_name(tokens)
                if name in valid_clauses:
                    body.trim_whitespace()
                    return ClauseResult(body, token, name)
                if opener is not None and (name in IF_CLAUSES or name in RANDOM_CLAUSES):
                    raise UnterminatedBlockError(
                        f"Command \"{opener_name}\" not terminated", opener.line, opener.column
                    )
                if body.replies and name not in ("if", "random"):
                    raise ScriptParseError("Found << after reply", token.line, token.column)
                body.add_command(parser.parse_from_name(token, tokens))
            elif token.type == TokenType.REPLY_START:
                reply = ReplyParser(self.node_state).parse(tokens)
                if reply.statement is None and body.has_autoforward_reply():
                    raise ScriptParseError("Found more than one autoforward reply", token.line, token.column)
                body.add_reply(reply)
            else:
                raise ScriptParseError(f"Unexpected token: {token.type.name}", token.line, token.column)
        body.trim_whitespace()
        return ClauseResult(body, None, None)

    @staticmethod
    def _parse_text(tokens: TokenStream) -> TextTemplate:
        parts = []
        while tokens.current is not None:
            token = tokens.current
            if token.type == TokenType.TEXT:
                parts.append(LiteralPart(token.value))
            elif token.type == TokenType.VARIABLE:
                parts.append(VariablePart(token.value))
            else:
                break
            tokens.advance()
        return TextTemplate(tuple(parts))


# Commands

CommandBuilder = Callable[["CommandParser", BodyToken, TokenStream], Command]


class CommandParser:
    """Parses one <<command>>, restricted to valid_commands."""

    def __init__(self, valid_commands: Sequence[str], node_state: NodeState):
        self.valid_commands = valid_commands
        self.node_state = node_state

    def read_command_name(self, tokens: TokenStream) -> str:
        """Move from << to the name token and return the name."""
        start_token = tokens.current
        tokens.advance()
        tokens.skip_whitespace()
        return self._command_name(start_token, tokens.current)

    def parse_from_start(self, tokens: TokenStream) -> Command:
        start_token = tokens.current
        tokens.advance()
        tokens.skip_whitespace()
        return self.parse_from_name(start_token, tokens)

    def parse_from_name(self, start_token: BodyToken, tokens: TokenStream) -> Command:
        token = tokens.current
        name = self._command_name(start_token, token)
        if name not in self.valid_commands:
            if name in COMMAND_BUILDERS or name in IF_CLAUSES or name in RANDOM_CLAUSES:
                raise UnknownCommandError(f"Unexpected command: {name}", token.line, token.column)
            raise UnknownCommandError(f"Unknown command: {name}", token.line, token.column)
        builder = COMMAND_BUILDERS.get(name)
        if builder is None:
            raise UnknownCommandError(f"Unknown command: {name}", token.line, token.column)
        return builder(self, start_token, tokens)

    @staticmethod
    def _command_name(start_token: BodyToken, token: BodyToken | None) -> str:
        if token is None:
            raise UnterminatedBlockError("Command not terminated", start_token.line, start_token.column)
        if token.type != TokenType.TEXT:
            raise ScriptParseError(
                f"Expected command name, found token: {token.type.name}", token.line, token.column
            )
        return token.text.split(None, 1)[0]

    # Attribute-style commands

    def _parse_action(self, start_token: BodyToken, tokens: TokenStream) -> ActionCommand:
        attrs = parse_attributes(start_token, tokens)
        action_type = attrs.plain("type", required=True)
        if action_type not in ACTION_TYPES:
            type_token = attrs.token("type")
            raise InvalidAttributeError(
                f"Invalid value for attribute \"type\": {action_type}", type_token.line, type_token.column
            )
        value = attrs.template("value", required=True)
        parameters = {name: attrs.template(name) for name in attrs if name not in ("type", "value")}
        return ActionCommand(action_type=action_type, value=value, parameters=parameters)

    def _parse_input(self, start_token: BodyToken, tokens: TokenStream) -> InputCommand:
        attrs = parse_attributes(start_token, tokens)
        input_type = attrs.plain("type", required=True)
        if input_type not in INPUT_TYPES:
            type_token = attrs.token("type")
            raise InvalidAttributeError(
                f"Invalid value for attribute \"type\": {input_type}", type_token.line, type_token.column
            )
        description = attrs.plain("description") or None
        return INPUT_BUILDERS[input_type](attrs, description)

    def _parse_random(self, start_token: BodyToken, tokens: TokenStream) -> RandomCommand:
        weight = _read_weight(parse_attributes(start_token, tokens))
        clauses = []
        while True:
            result = BodyParser(self.node_state).parse_until_clause(
                tokens, BODY_COMMANDS, RANDOM_CLAUSES, start_token, "random"
            )
            if result.clause_token is None:
                raise UnterminatedBlockError(
                    "Command \"random\" not terminated", start_token.line, start_token.column
                )
            clauses.append(RandomClause(weight, result.body))
            attrs = parse_attributes(result.clause_token, tokens)
            if result.clause_name == "endrandom":
                return RandomCommand(tuple(clauses))
            weight = _read_weight(attrs)

    # Expression-style commands

    def _parse_if(self, start_token: BodyToken, tokens: TokenStream) -> IfCommand:
        condition = self._read_expression(start_token, tokens, "if")
        _check_no_assignment(start_token, condition, "Found assignment expression in \"if\" command")
        clauses = []
        else_body = None
        in_else = False
        while True:
            result = BodyParser(self.node_state).parse_until_clause(
                tokens, BODY_COMMANDS, IF_CLAUSES, start_token, "if"
            )
            if result.clause_token is None:
                raise UnterminatedBlockError("Command \"if\" not terminated", start_token.line, start_token.column)
            if in_else:
                else_body = result.body
            else:
                clauses.append(IfClause(condition, result.body))

            clause_token = result.clause_token
            if result.clause_name == "elseif":
                if in_else:
                    raise DuplicateClauseError(
                        "Found \"elseif\" after \"else\"", clause_token.line, clause_token.column
                    )
                condition = self._read_expression(clause_token, tokens, "elseif")
                _check_no_assignment(
                    clause_token, condition, "Found assignment expression in \"elseif\" command"
                )
            elif result.clause_name == "else":
                if in_else:
                    raise DuplicateClauseError(
                        "Found more than one \"else\"", clause_token.line, clause_token.column
                    )
                self._read_name_only(clause_token, tokens, "else")
                in_else = True
            else:
                self._read_name_only(clause_token, tokens, "endif")
                return IfCommand(tuple(clauses), else_body)

    def _parse_set(self, start_token: BodyToken, tokens: TokenStream) -> SetCommand:
        expression = self._read_expression(start_token, tokens, "set")
        if not isinstance(expression, AssignExpression):
            raise ScriptParseError(
                "Expression in \"set\" command is not an assignment", start_token.line, start_token.column
            )
        _check_no_assignment(
            start_token, expression.value,
            "Found assignment expression in value operand of \"set\" command",
        )
        return SetCommand(expression)

    def _read_expression(self, start_token: BodyToken, tokens: TokenStream, name: str) -> Expression:
        found, expression = _parse_command_content(start_token, *_read_command_content(start_token, tokens))
        if found != name:
            raise ScriptParseError(
                f"Expected command \"{name}\", found: {found}", start_token.line, start_token.column
            )
        if expression is None:
            raise ScriptParseError(
                f"Expression not found in command \"{name}\"", start_token.line, start_token.column
            )
        return expression

    def _read_name_only(self, start_token: BodyToken, tokens: TokenStream, name: str) -> None:
        found, expression = _parse_command_content(start_token, *_read_command_content(start_token, tokens))
        if found != name:
            raise ScriptParseError(
                f"Expected command \"{name}\", found: {found}", start_token.line, start_token.column
            )
        if expression is not None:
            raise ScriptParseError(
                f"Unexpected content after command name \"{name}\"", start_token.line, start_token.column
            )


COMMAND_BUILDERS: dict[str, CommandBuilder] = {
    "action": CommandParser._parse_action,
    "if": CommandParser._parse_if,
    "input": CommandParser._parse_input,
    "random": CommandParser._parse_random,
    "set": CommandParser._parse_set,
}


def _read_weight(attrs: AttributeSet) -> float:
    weight = attrs.number("weight", minimum=0.0)
    return DEFAULT_WEIGHT if weight is None else weight


def _check_no_assignment(start_token: BodyToken, expression: Expression, message: str) -> None:
    for node in (expression, *expression.descendants()):
        if isinstance(node, AssignExpression):
            raise ScriptParseError(message, start_token.line, start_token.column)


def _read_command_content(start_token: BodyToken, tokens: TokenStream) -> tuple[str, int, int]:
    """
    Raw source text from the name token up to >>.

    Returns:
        (content, line, column) where line and column locate the
        first character of content
    """
    first = tokens.current
    parts = []
    while tokens.current is not None:
        token = tokens.current
        tokens.advance()
        if token.type == TokenType.COMMAND_END:
            return "".join(parts), first.line, first.column
        parts.append(token.text)
    raise UnterminatedBlockError("Command not terminated", start_token.line, start_token.column)


def _parse_command_content(
    start_token: BodyToken, content: str, line: int, column: int
) -> tuple[str, Expression | None]:
    """Split content into command name and optional expression."""
    if not content.strip():
        raise ScriptParseError("Found empty command", start_token.line, start_token.column)
    match = _COMMAND_NAME_RE.match(content)
    if match is None:
        raise ScriptParseError("Invalid command name", line, column)
    rest = content[match.end():]
    if not rest.strip():
        return match.group(1), None
    try:
        return match.group(1), parse_expression(rest)
    except ExpressionParseError as e:
        # Position of e inside content, then inside the script
        prefix = content[:match.end()]
        content_line = prefix.count("\n") + e.line
        if e.line == 1:
            content_column = len(prefix) - (prefix.rfind("\n") + 1) + e.column
        else:
            content_column = e.column
        script_line = line + content_line - 1
        script_column = content_column + column - 1 if content_line == 1 else content_column
        raise ScriptParseError(
            f"Invalid expression in command: {e.message}", script_line, script_column
        ) from None


# Inputs

def _input_email(attrs: AttributeSet, description: str | None) -> InputCommand:
    return InputEmailCommand(variable=attrs.variable("value", required=True), description=description)


def _text_options(attrs: AttributeSet) -> dict:
    options = {
        "variable": attrs.variable("value", required=True),
        "min": attrs.integer("min"),
        "max": attrs.integer("max"),
    }
    for attr, field_name, default in InputTextCommand.FLAGS:
        value = attrs.boolean(attr)
        options[field_name] = default if value is None else value
    return options


def _input_text(attrs: AttributeSet, description: str | None) -> InputCommand:
    return InputTextCommand(description=description, **_text_options(attrs))


def _input_longtext(attrs: AttributeSet, description: str | None) -> InputCommand:
    return InputLongtextCommand(description=description, **_text_options(attrs))


def _input_numeric(attrs: AttributeSet, description: str | None) -> InputCommand:
    return InputNumericCommand(
        variable=attrs.variable("value", required=True),
        min=attrs.integer("min"),
        max=attrs.integer("max"),
        description=description,
    )


def _input_set(attrs: AttributeSet, description: str | None) -> InputCommand:
    options = []
    index = 1
    while True:
        value_name, option_name = f"value{index}", f"option{index}"
        if value_name not in attrs and option_name not in attrs:
            return InputSetCommand(options=tuple(options), description=description)
        if option_name not in attrs:
            raise _start_error(attrs, f"Found attribute \"{value_name}\" without attribute \"{option_name}\"")
        if value_name not in attrs:
            raise _start_error(attrs, f"Found attribute \"{option_name}\" without attribute \"{value_name}\"")
        options.append(SetOption(attrs.variable(value_name, required=True), attrs.template(option_name)))
        index += 1


def _input_time(attrs: AttributeSet, description: str | None) -> InputCommand:
    granularity = attrs.integer("granularityMinutes", minimum=1)
    times = {
        field_name: _read_time(attrs, attr)
        for attr, field_name in InputTimeCommand.TIME_ATTRIBUTES
    }
    return InputTimeCommand(
        variable=attrs.variable("value", required=True),
        granularity_minutes=1 if granularity is None else granularity,
        description=description,
        **times,
    )


def _read_time(attrs: AttributeSet, name: str) -> TextTemplate | None:
    """Time template. Plain values are checked and normalized now."""
    template = attrs.template(name)
    if template is None or not template.is_plain_text():
        return template
    text = template.evaluate(None)
    try:
        return TextTemplate.of(parse_local_time(text))
    except ValueError:
        token = attrs.token(name)
        raise InvalidAttributeError(
            f"Invalid value for attribute \"{name}\": Invalid local time value: {text}",
            token.line, token.column,
        ) from None


def _start_error(attrs: AttributeSet, message: str) -> InvalidAttributeError:
    return InvalidAttributeError(message, attrs.start_token.line, attrs.start_token.column)


INPUT_BUILDERS: dict[str, Callable[[AttributeSet, str | None], InputCommand]] = {
    "email": _input_email,
    "text": _input_text,
    "longtext": _input_longtext,
    "numeric": _input_numeric,
    "set": _input_set,
    "time": _input_time,
}


# Replies

@dataclass
class _ReplySection:
    tokens: list[BodyToken] = field(default_factory=list)
    end_line: int = 0
    end_column: int = 0


class ReplyParser:
    """Parses [[statement|pointer|commands]]. Only the pointer is required."""

    MAX_SECTIONS = 3

    def __init__(self, node_state: NodeState):
        self.node_state = node_state

    def parse(self, tokens: TokenStream) -> Reply:
        """Parse a reply. The stream must be at [[ and ends past ]]."""
        sections = self._read_sections(tokens)
        if len(sections) == 1:
            statement_section, pointer_section, command_section = None, sections[0], None
        elif len(sections) == 2:
            statement_section, pointer_section, command_section = sections[0], sections[1], None
        else:
            statement_section, pointer_section, command_section = sections

        statement = self._parse_statement(statement_section)
        pointer = self._parse_pointer(pointer_section)
        reply = Reply(self.node_state.next_reply_id(), statement, pointer)
        if command_section is not None:
            reply.commands.extend(self._parse_commands(command_section))
        return reply

    def _read_sections(self, tokens: TokenStream) -> list[_ReplySection]:
        start_token = tokens.current
        tokens.advance()
        sections = [_ReplySection()]
        while tokens.current is not None:
            token = tokens.current
            tokens.advance()
            if token.type == TokenType.REPLY_SEPARATOR:
                if len(sections) == self.MAX_SECTIONS:
                    raise ScriptParseError(
                        f"Exceeded maximum number of {self.MAX_SECTIONS} sections", token.line, token.column
                    )
                sections[-1].end_line, sections[-1].end_column = token.line, token.column
                sections.append(_ReplySection())
            elif token.type == TokenType.REPLY_END:
                sections[-1].end_line, sections[-1].end_column = token.line, token.column
                return sections
            else:
                sections[-1].tokens.append(token)
        raise UnterminatedBlockError("Reply not terminated", start_token.line, start_token.column)

    def _parse_statement(self, section: _ReplySection | None) -> NodeBody | None:
        if section is None:
            return None
        body = BodyParser(self.node_state).parse(section.tokens, REPLY_STATEMENT_COMMANDS)
        return body if body.segments else None

    def _parse_pointer(self, section: _ReplySection) -> NodePointer:
        tokens = trim_whitespace(section.tokens)
        if not tokens:
            raise ScriptParseError("Empty node pointer in reply", section.end_line, section.end_column)
        token = tokens[0]
        if len(tokens) != 1 or token.type != TokenType.TEXT:
            raise ScriptParseError("Invalid node pointer in reply", token.line, token.column)

        text = token.value
        if NODE_NAME_RE.fullmatch(text):
            pointer: NodePointer = InternalNodePointer(text)
        elif EXTERNAL_POINTER_RE.fullmatch(text):
            reference, _, node_id = text.rpartition(".")
            try:
                pointer = ExternalNodePointer(reference, node_id, self.node_state.dialogue_name)
            except ValueError as e:
                raise ScriptParseError(f"Invalid node pointer in reply: {e}", token.line, token.column) from e
        else:
            raise ScriptParseError(f"Invalid node pointer in reply: {text}", token.line, token.column)
        self.node_state.add_pointer_token(pointer, token)
        return pointer

    def _parse_commands(self, section: _ReplySection) -> list[Command]:
        commands = []
        stream = TokenStream(section.tokens)
        stream.skip_whitespace()
        while stream.current is not None:
            token = stream.current
            if token.type != TokenType.COMMAND_START:
                raise ScriptParseError(f"Expected <<, found token: {token.type.name}", token.line, token.column)
            commands.append(CommandParser(REPLY_COMMANDS, self.node_state).parse_from_start(stream))
            stream.skip_whitespace()
        return commands
