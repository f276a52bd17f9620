"""
Attribute reader for attribute-style commands.

action, input, random and or take name="value" attributes. Every
value is a quoted string and may contain $variables. The typed
readers below validate a value and report errors at the position of
the attribute.
"""

from __future__ import annotations

import math
from typing import Iterator

from talkframework.dialog.constants import VARIABLE_NAME_RE
from talkframework.dialog.errors import InvalidAttributeError, UnterminatedBlockError
from talkframework.dialog.template import TextTemplate
from talkframework.dialog.tokenizer import BodyToken, TokenStream, TokenType


def parse_attributes(start_token: BodyToken, tokens: TokenStream) -> AttributeSet:
    """
    Read the attributes of a command.

    The stream must be at the token holding the command name. On return
    it is past the closing >>.

    Raises:
        InvalidAttributeError: On malformed attributes
        UnterminatedBlockError: If >> is missing
    """
    attributes: dict[str, BodyToken] = {}
    first = True
    while tokens.current is not None:
        token = tokens.current
        if first:
            first = False
            # The first text token starts with the command name
            split = token.value.strip().split(None, 1)
            if len(split) < 2:
                tokens.advance()
                tokens.skip_whitespace()
                continue
            text = split[1]
        elif token.type == TokenType.COMMAND_END:
            tokens.advance()
            return AttributeSet(start_token, attributes)
        elif token.type != TokenType.TEXT:
            raise InvalidAttributeError(
                f"Expected attribute name, found token: {token.type.name}", token.line, token.column
            )
        else:
            text = token.value.strip()

        name, sep, rest = text.partition("=")
        name = name.strip()
        if not VARIABLE_NAME_RE.fullmatch(name):
            raise InvalidAttributeError(f"Invalid attribute name: {name}", token.line, token.column)
        if not sep:
            raise InvalidAttributeError("Character = not found after attribute name", token.line, token.column)
        if rest.strip():
            raise InvalidAttributeError("Unexpected text after =", token.line, token.column)

        tokens.advance()
        tokens.skip_whitespace()
        token = tokens.current
        if token is None:
            break
        if token.type != TokenType.QUOTED_STRING:
            raise InvalidAttributeError(
                f"Expected quoted string, found token: {token.type.name}", token.line, token.column
            )
        attributes[name] = token
        tokens.advance()
        tokens.skip_whitespace()
    raise UnterminatedBlockError("Command not terminated", start_token.line, start_token.column)


class AttributeSet:
    """Parsed attributes of one command, in script order."""

    def __init__(self, start_token: BodyToken, tokens: dict[str, BodyToken]):
        self.start_token = start_token
        self._tokens = tokens

    def __contains__(self, name: object) -> bool:
        return name in self._tokens

    def __iter__(self) -> Iterator[str]:
        return iter(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def token(self, name: str) -> BodyToken | None:
        return self._tokens.get(name)

    def _error(self, message: str, name: str | None = None) -> InvalidAttributeError:
        token = self._tokens.get(name) if name else None
        if token is None:
            token = self.start_token
        return InvalidAttributeError(message, token.line, token.column)

    def template(self, name: str, required: bool = False) -> TextTemplate | None:
        if name not in self._tokens:
            if required:
                raise self._error(f"Required attribute \"{name}\" not found")
            return None
        return self._tokens[name].value

    def plain(self, name: str, required: bool = False) -> str | None:
        template = self.template(name, required)
        if template is None:
            return None
        if not template.is_plain_text():
            raise self._error(
                f"Value for attribute \"{name}\" is not plain text: {self._tokens[name].text}", name
            )
        return template.evaluate(None)

    def variable(self, name: str, required: bool = False) -> str | None:
        """Name of the variable in a value written as "$name"."""
        template = self.template(name, required)
        if template is None:
            return None
        variable = template.single_variable()
        if variable is None:
            raise self._error(
                f"Value for attribute \"{name}\" is not a variable: {self._tokens[name].text}", name
            )
        return variable

    def integer(
        self,
        name: str,
        required: bool = False,
        minimum: int | None = None,
        maximum: int | None = None,
    ) -> int | None:
        text = self.plain(name, required)
        if text is None:
            return None
        try:
            value = int(text)
        except ValueError:
            raise self._error(f"Invalid value for attribute \"{name}\": {text}", name) from None
        self._check_range(name, value, minimum, maximum)
        return value

    def number(
        self,
        name: str,
        required: bool = False,
        minimum: float | None = None,
        maximum: float | None = None,
    ) -> float | None:
        text = self.plain(name, required)
        if text is None:
            return None
        try:
            value = float(text)
        except ValueError:
            raise self._error(f"Invalid value for attribute \"{name}\": {text}", name) from None
        if not math.isfinite(value):
            raise self._error(f"Invalid value for attribute \"{name}\": {text}", name)
        self._check_range(name, value, minimum, maximum)
        return value

    def boolean(self, name: str, required: bool = False) -> bool | None:
        text = self.plain(name, required)
        if text is None:
            return None
        if text.lower() not in ("true", "false"):
            raise self._error(
                f"Invalid value for attribute \"{name}\" (use \"true\" or \"false\"): {text}", name
            )
        return text.lower() == "true"

    def _check_range(self, name: str, value: float, minimum: float | None, maximum: float | None) -> None:
        if minimum is not None and value < minimum:
            raise self._error(f"Value for attribute \"{name}\" < {minimum}: {value}", name)
        if maximum is not None and value > maximum:
            raise self._error(f"Value for attribute \"{name}\" > {maximum}: {value}", name)
