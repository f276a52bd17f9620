"""
Expression parser.

Turns expression text such as ``$count + 1 > 3 && !$done`` into an
Expression tree. The grammar is compiled once with lark's LALR parser
and the tree is built on the fly by an embedded Transformer.

Operators, loosest binding first:
    =                   assignment (right-associative, target must be $var)
    ||                  logical or
    &&                  logical and
    == != < <= > >= in  comparison (non-associative)
    + -                 additive
    * / %               multiplicative
    ! -                 unary
    a[i] a.b            index and member access

Usage:
    expr = parse_expression('$name == "Bob"')
    expr.evaluate({"name": "Bob"}).as_boolean()  # True
"""

from __future__ import annotations

import logging

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from talkengine.expressions.errors import ExpressionParseError
from talkengine.expressions.nodes import (
    AssignExpression,
    BinaryExpression,
    Expression,
    IndexExpression,
    ListExpression,
    Literal,
    MapExpression,
    MemberExpression,
    UnaryExpression,
    VariableExpression,
)

logger = logging.getLogger(__name__)

GRAMMAR = r"""
?start: assign

?assign: VARIABLE "=" assign            -> assign
       | or_test

?or_test: or_test "||" and_test         -> or_op
        | and_test

?and_test: and_test "&&" comparison     -> and_op
         | comparison

?comparison: sum
           | sum "==" sum               -> eq
           | sum "!=" sum               -> ne
           | sum "<" sum                -> lt
           | sum "<=" sum               -> le
           | sum ">" sum                -> gt
           | sum ">=" sum               -> ge
           | sum "in" sum               -> contains

?sum: sum "+" product                   -> add
    | sum "-" product                   -> sub
    | product

?product: product "*" unary             -> mul
        | product "/" unary             -> div
        | product "%" unary             -> mod
        | unary

?unary: "!" unary                       -> not_
      | "-" unary                       -> neg
      | postfix

?postfix: postfix "[" assign "]"        -> index
        | postfix "." NAME              -> member
        | atom

?atom: VARIABLE                         -> variable
     | NUMBER                           -> number
     | STRING                           -> string
     | "true"                           -> true
     | "false"                          -> false
     | "null"                           -> null
     | "[" [assign ("," assign)*] "]"   -> list
     | "{" [pair ("," pair)*] "}"       -> map
     | "(" assign ")"

pair: assign ":" assign

VARIABLE: /\$[A-Za-z_][A-Za-z0-9_]*/
NAME: /[A-Za-z_][A-Za-z0-9_]*/
NUMBER: /\d+(\.\d+)?([eE][+-]?\d+)?/
STRING: /"(\\.|[^"\\])*"/ | /'(\\.|[^'\\])*'/

%import common.WS
%ignore WS
"""

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


def unescape_string(token: str) -> str:
    """Strip the quotes of a STRING token and resolve backslash escapes."""
    body = token[1:-1]
    result = []
    i = 0
    while i < len(body):
        c = body[i]
        if c == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            result.append(_ESCAPES.get(nxt, nxt))
            i += 2
        else:
            result.append(c)
            i += 1
    return "".join(result)


@v_args(inline=True)
class ExpressionBuilder(Transformer):
    """Builds Expression nodes while lark reduces the grammar."""

    def assign(self, variable, value):
        return AssignExpression(str(variable)[1:], value)

    def or_op(self, left, right):
        return BinaryExpression("||", left, right)

    def and_op(self, left, right):
        return BinaryExpression("&&", left, right)

    def eq(self, left, right):
        return BinaryExpression("==", left, right)

    def ne(self, left, right):
        return BinaryExpression("!=", left, right)

    def lt(self, left, right):
        return BinaryExpression("<", left, right)

    def le(self, left, right):
        return BinaryExpression("<=", left, right)

    def gt(self, left, right):
        return BinaryExpression(">", left, right)

    def ge(self, left, right):
        return BinaryExpression(">=", left, right)

    def contains(self, left, right):
        return BinaryExpression("in", left, right)

    def add(self, left, right):
        return BinaryExpression("+", left, right)

    def sub(self, left, right):
        return BinaryExpression("-", left, right)

    def mul(self, left, right):
        return BinaryExpression("*", left, right)

    def div(self, left, right):
        return BinaryExpression("/", left, right)

    def mod(self, left, right):
        return BinaryExpression("%", left, right)

    def not_(self, operand):
        return UnaryExpression("!", operand)

    def neg(self, operand):
        return UnaryExpression("-", operand)

    def index(self, target, index):
        return IndexExpression(target, index)

    def member(self, target, name):
        return MemberExpression(target, str(name))

    def variable(self, token):
        return VariableExpression(str(token)[1:])

    def number(self, token):
        text = str(token)
        if any(c in text for c in ".eE"):
            return Literal(float(text))
        return Literal(int(text))

    def string(self, token):
        return Literal(unescape_string(str(token)))

    def true(self):
        return Literal(True)

    def false(self):
        return Literal(False)

    def null(self):
        return Literal(None)

    def list(self, *items):
        return ListExpression(tuple(item for item in items if item is not None))

    def map(self, *pairs):
        return MapExpression(tuple(pair for pair in pairs if pair is not None))

    def pair(self, key, value):
        return (key, value)


_parser = Lark(GRAMMAR, parser="lalr", transformer=ExpressionBuilder())


def parse_expression(text: str) -> Expression:
    """
    Parse expression text.

    Args:
        text: The expression source

    Returns:
        The root Expression

    Raises:
        ExpressionParseError: If the text is not a single valid expression
    """
    if not text.strip():
        raise ExpressionParseError("Empty expression", 1, 1)
    try:
        return _parser.parse(text)
    except UnexpectedEOF:
        line, column = _end_position(text)
        raise ExpressionParseError("Unexpected end of expression", line, column) from None
    except UnexpectedToken as e:
        if e.token.type == "$END":
            line, column = _end_position(text)
            raise ExpressionParseError("Unexpected end of expression", line, column) from None
        raise ExpressionParseError(f"Unexpected token: {e.token}", e.line, e.column) from None
    except UnexpectedCharacters as e:
        raise ExpressionParseError(
            f"Unexpected character: {text[e.pos_in_stream]!r}", e.line, e.column
        ) from None
    except UnexpectedInput as e:
        logger.debug(f"Unclassified parse failure for {text!r}: {e}")
        raise ExpressionParseError("Invalid expression", max(e.line, 1), max(e.column, 1)) from None


def _end_position(text: str) -> tuple[int, int]:
    lines = text.split("\n")
    return len(lines), len(lines[-1]) + 1
