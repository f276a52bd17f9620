"""Errors raised by the expression language."""

from __future__ import annotations


class ExpressionError(Exception):
    """Base class for expression errors."""


class ExpressionParseError(ExpressionError):
    """
    Syntax error in expression text.

    Line and column are 1-based and relative to the text that was
    given to parse_expression().
    """

    def __init__(self, message: str, line: int = 1, column: int = 1):
        super().__init__(f"{message} (line {line}, column {column})")
        self.message = message
        self.line = line
        self.column = column


class EvaluationError(ExpressionError):
    """Run-time failure while evaluating an expression."""
