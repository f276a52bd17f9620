"""
Expression language used inside dialogue commands.

Exports:
- parse_expression: Parse text into an Expression tree
- Expression and node types
- Value: Script value semantics (as_boolean, str formatting)
- ExpressionError, ExpressionParseError, EvaluationError
"""

from talkengine.expressions.errors import ExpressionError, ExpressionParseError, EvaluationError
from talkengine.expressions.value import Value, format_value
from talkengine.expressions.nodes import (
    Expression,
    Literal,
    VariableExpression,
    ListExpression,
    MapExpression,
    UnaryExpression,
    BinaryExpression,
    IndexExpression,
    MemberExpression,
    AssignExpression,
)
from talkengine.expressions.parser import parse_expression

__all__ = [
    # Parsing
    "parse_expression",
    # Values
    "Value",
    "format_value",
    # Nodes
    "Expression",
    "Literal",
    "VariableExpression",
    "ListExpression",
    "MapExpression",
    "UnaryExpression",
    "BinaryExpression",
    "IndexExpression",
    "MemberExpression",
    "AssignExpression",
    # Errors
    "ExpressionError",
    "ExpressionParseError",
    "EvaluationError",
]
