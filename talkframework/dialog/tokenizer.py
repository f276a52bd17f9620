"""
Body tokenizer.

Splits the lines of a node body into tokens. The tokenizer keeps its
state across lines, so a command or reply may span several lines of
the same node. Use one BodyTokenizer per node body.

Token types:
    TEXT             plain text, escapes already applied in value
    VARIABLE         $name
    COMMAND_START    <<
    COMMAND_END      >>
    QUOTED_STRING    "..." inside a command, value is a TextTemplate
    REPLY_START      [[
    REPLY_END        ]]
    REPLY_SEPARATOR  | inside a reply, outside a command

Usage:
    tokenizer = BodyTokenizer()
    tokens = []
    for number, line in enumerate(lines, start=1):
        tokens.extend(tokenizer.read_body_tokens(line + "\\n", number))
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Iterable

from talkframework.dialog.errors import ScriptParseError, UnterminatedBlockError
from talkframework.dialog.template import LiteralPart, Part, TextTemplate, VariablePart


class TokenType(Enum):
    TEXT = auto()
    VARIABLE = auto()
    COMMAND_START = auto()
    COMMAND_END = auto()
    QUOTED_STRING = auto()
    REPLY_START = auto()
    REPLY_END = auto()
    REPLY_SEPARATOR = auto()


@dataclass
class BodyToken:
    """
    One token of a node body.

    Attributes:
        type: Token type
        text: Source text of the token, as written in the script
        value: str for TEXT and VARIABLE (the variable name),
            TextTemplate for QUOTED_STRING, None otherwise
        line: 1-based line number
        column: 1-based column of the first character
    """
    type: TokenType
    text: str
    value: Any = None
    line: int = 0
    column: int = 0

    def is_whitespace(self) -> bool:
        return self.type == TokenType.TEXT and not self.value.strip()

    def __str__(self) -> str:
        return f"{self.type.name}({self.text!r}) at {self.line}:{self.column}"


def _is_name_start(c: str) -> bool:
    return c == "_" or ("a" <= c <= "z") or ("A" <= c <= "Z")


def _is_name_char(c: str) -> bool:
    return _is_name_start(c) or ("0" <= c <= "9")


def read_variable_name(line: str, start: int) -> tuple[str, int]:
    """
    Read a variable name starting at index start.

    Returns:
        (name, end index). The name is empty if line[start] can't
        start a name.
    """
    if start >= len(line) or not _is_name_start(line[start]):
        return "", start
    end = start + 1
    while end < len(line) and _is_name_char(line[end]):
        end += 1
    return line[start:end], end


class BodyTokenizer:
    """Stateful tokenizer for the lines of one node body."""

    def __init__(self):
        self.in_command = False
        self.in_reply = False
        self._text: list[str] = []
        self._text_column = 1

    def read_body_tokens(self, line: str, line_number: int) -> list[BodyToken]:
        """
        Tokenize one line. Include the line terminator if it is part
        of the text.

        Raises:
            ScriptParseError: On misplaced << >> [[ ]] or an
                unterminated quoted string
        """
        tokens: list[BodyToken] = []
        self._start_text(1)
        length = len(line)
        i = 0
        while i < length:
            c = line[i]
            pair = line[i:i + 2]
            if c == "$":
                i = self._read_variable(tokens, line, line_number, i)
            elif c == "\\":
                # Escaped character, or nothing at the end of the line
                self._text.append(line[i + 1:i + 2])
                i += 2
            elif pair == "//":
                break
            elif pair == "<<":
                self._finish_text(tokens, line, line_number, i)
                if self.in_command:
                    raise ScriptParseError("Found << inside <<...>>", line_number, i + 1)
                tokens.append(BodyToken(TokenType.COMMAND_START, "<<", None, line_number, i + 1))
                self.in_command = True
                i += 2
                self._start_text(i + 1)
            elif pair == ">>":
                self._finish_text(tokens, line, line_number, i)
                if not self.in_command:
                    raise ScriptParseError("Found >> without preceding <<", line_number, i + 1)
                tokens.append(BodyToken(TokenType.COMMAND_END, ">>", None, line_number, i + 1))
                self.in_command = False
                i += 2
                self._start_text(i + 1)
            elif pair == "[[" and not self.in_command:
                self._finish_text(tokens, line, line_number, i)
                if self.in_reply:
                    raise ScriptParseError("Found [[ inside [[...]]", line_number, i + 1)
                tokens.append(BodyToken(TokenType.REPLY_START, "[[", None, line_number, i + 1))
                self.in_reply = True
                i += 2
                self._start_text(i + 1)
            elif pair == "]]" and not self.in_command:
                self._finish_text(tokens, line, line_number, i)
                if not self.in_reply:
                    raise ScriptParseError("Found ]] without preceding [[", line_number, i + 1)
                tokens.append(BodyToken(TokenType.REPLY_END, "]]", None, line_number, i + 1))
                self.in_reply = False
                i += 2
                self._start_text(i + 1)
            elif c == '"' and self.in_command:
                i = self._read_quoted_string(tokens, line, line_number, i)
            elif c == "|" and self.in_reply and not self.in_command:
                self._finish_text(tokens, line, line_number, i)
                tokens.append(BodyToken(TokenType.REPLY_SEPARATOR, "|", None, line_number, i + 1))
                i += 1
                self._start_text(i + 1)
            else:
                self._text.append(c)
                i += 1
        self._finish_text(tokens, line, line_number, i)
        return tokens

    def _read_variable(self, tokens: list[BodyToken], line: str, line_number: int, start: int) -> int:
        name, end = read_variable_name(line, start + 1)
        if not name:
            self._text.append("$")
            return start + 1
        self._finish_text(tokens, line, line_number, start)
        tokens.append(BodyToken(TokenType.VARIABLE, line[start:end], name, line_number, start + 1))
        self._start_text(end + 1)
        return end

    def _read_quoted_string(self, tokens: list[BodyToken], line: str, line_number: int, start: int) -> int:
        self._finish_text(tokens, line, line_number, start)
        parts: list[Part] = []
        text: list[str] = []
        i = start + 1
        while i < len(line):
            c = line[i]
            if c == "\\":
                text.append(line[i + 1:i + 2])
                i += 2
            elif c == "$":
                name, end = read_variable_name(line, i + 1)
                if name:
                    parts.append(LiteralPart("".join(text)))
                    parts.append(VariablePart(name))
                    text = []
                    i = end
                else:
                    text.append(c)
                    i += 1
            elif c == '"':
                parts.append(LiteralPart("".join(text)))
                end = i + 1
                tokens.append(BodyToken(
                    TokenType.QUOTED_STRING, line[start:end], TextTemplate(tuple(parts)),
                    line_number, start + 1,
                ))
                self._start_text(end + 1)
                return end
            else:
                text.append(c)
                i += 1
        raise UnterminatedBlockError("Quoted string not terminated", line_number, start + 1)

    def _start_text(self, column: int) -> None:
        self._text = []
        self._text_column = column

    def _finish_text(self, tokens: list[BodyToken], line: str, line_number: int, end: int) -> None:
        value = "".join(self._text)
        if not value:
            return
        tokens.append(BodyToken(
            TokenType.TEXT, line[self._text_column - 1:end], value, line_number, self._text_column,
        ))
        self._text = []


class TokenStream:
    """Cursor over a token list. current is None past the end."""

    def __init__(self, tokens: Iterable[BodyToken]):
        self._tokens = list(tokens)
        self._pos = 0

    @property
    def current(self) -> BodyToken | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def advance(self) -> None:
        self._pos += 1

    def skip_whitespace(self) -> list[BodyToken]:
        """Skip whitespace-only text tokens and return them."""
        skipped = []
        while self.current is not None and self.current.is_whitespace():
            skipped.append(self.current)
            self.advance()
        return skipped


def trim_whitespace(tokens: list[BodyToken]) -> list[BodyToken]:
    """
    Copy of tokens without leading and trailing whitespace.

    Whitespace-only text tokens at both ends are dropped and the text
    tokens left at the ends are stripped.
    """
    result = list(tokens)
    while result and result[0].is_whitespace():
        result.pop(0)
    while result and result[-1].is_whitespace():
        result.pop()
    if result and result[0].type == TokenType.TEXT:
        first = result[0]
        result[0] = BodyToken(first.type, first.text, first.value.lstrip(), first.line, first.column)
    if result and result[-1].type == TokenType.TEXT:
        last = result[-1]
        result[-1] = BodyToken(last.type, last.text, last.value.rstrip(), last.line, last.column)
    return result
