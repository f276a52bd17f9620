"""
Expression tree.

Every node is a frozen dataclass so parsed expressions can be shared
between conversations and compared structurally. Evaluation reads
and writes a plain mapping of variable name -> raw value; the only
node that writes is AssignExpression.

Provides:
- Expression: abstract base (evaluate, children, descendants, variable_names)
- Literal, VariableExpression, ListExpression, MapExpression
- UnaryExpression, BinaryExpression, IndexExpression, MemberExpression
- AssignExpression
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, MutableMapping

from talkengine.expressions.errors import EvaluationError
from talkengine.expressions.value import Value

Bindings = MutableMapping[str, Any]

# Binding strength, used to decide where str() needs parentheses
_PRECEDENCE = {
    "=": 1,
    "||": 2,
    "&&": 3,
    "==": 4, "!=": 4, "<": 4, "<=": 4, ">": 4, ">=": 4, "in": 4,
    "+": 5, "-": 5,
    "*": 6, "/": 6, "%": 6,
}
_UNARY_PRECEDENCE = 7


class Expression:
    """Base class for expression nodes."""

    precedence = 8

    def evaluate(self, bindings: Bindings | None) -> Value:
        raise NotImplementedError

    def children(self) -> tuple[Expression, ...]:
        return ()

    def descendants(self) -> Iterator[Expression]:
        """All nodes below this one, depth first."""
        for child in self.children():
            yield child
            yield from child.descendants()

    def variable_names(self) -> set[str]:
        """Names of every variable this expression reads or writes."""
        names = set()
        for node in (self, *self.descendants()):
            if isinstance(node, VariableExpression):
                names.add(node.name)
            elif isinstance(node, AssignExpression):
                names.add(node.variable)
        return names

    def _wrap(self, child: Expression, min_precedence: int) -> str:
        text = str(child)
        if child.precedence < min_precedence:
            return f"({text})"
        return text


@dataclass(frozen=True)
class Literal(Expression):
    value: Any

    def evaluate(self, bindings: Bindings | None) -> Value:
        return Value(self.value)

    def __str__(self) -> str:
        if isinstance(self.value, str):
            return quote_string(self.value)
        if self.value is None:
            return "null"
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return repr(self.value)


@dataclass(frozen=True)
class VariableExpression(Expression):
    name: str

    def evaluate(self, bindings: Bindings | None) -> Value:
        if bindings is None:
            return Value(None)
        return Value(bindings.get(self.name))

    def __str__(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class ListExpression(Expression):
    items: tuple[Expression, ...] = ()

    def evaluate(self, bindings: Bindings | None) -> Value:
        return Value([item.evaluate(bindings).value for item in self.items])

    def children(self) -> tuple[Expression, ...]:
        return self.items

    def __str__(self) -> str:
        return "[" + ", ".join(str(item) for item in self.items) + "]"


@dataclass(frozen=True)
class MapExpression(Expression):
    entries: tuple[tuple[Expression, Expression], ...] = ()

    def evaluate(self, bindings: Bindings | None) -> Value:
        result = {}
        for key_expr, value_expr in self.entries:
            key = key_expr.evaluate(bindings)
            if not key.is_string():
                raise EvaluationError(f"Map key must be a string, found {key.type_name}")
            result[key.value] = value_expr.evaluate(bindings).value
        return Value(result)

    def children(self) -> tuple[Expression, ...]:
        return tuple(node for entry in self.entries for node in entry)

    def __str__(self) -> str:
        return "{" + ", ".join(f"{k}: {v}" for k, v in self.entries) + "}"


@dataclass(frozen=True)
class UnaryExpression(Expression):
    operator: str
    operand: Expression

    precedence = _UNARY_PRECEDENCE

    def evaluate(self, bindings: Bindings | None) -> Value:
        value = self.operand.evaluate(bindings)
        if self.operator == "!":
            return Value(not value.as_boolean())
        if self.operator == "-":
            if not value.is_numeric():
                raise EvaluationError(f"Cannot negate {value.type_name}: {value}")
            return Value(-value.value)
        raise EvaluationError(f"Unknown unary operator: {self.operator}")

    def children(self) -> tuple[Expression, ...]:
        return (self.operand,)

    def __str__(self) -> str:
        return self.operator + self._wrap(self.operand, _UNARY_PRECEDENCE)


@dataclass(frozen=True)
class BinaryExpression(Expression):
    operator: str
    left: Expression
    right: Expression

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self.operator]

    def evaluate(self, bindings: Bindings | None) -> Value:
        # Logical operators short-circuit and yield a boolean
        if self.operator == "&&":
            if not self.left.evaluate(bindings).as_boolean():
                return Value(False)
            return Value(self.right.evaluate(bindings).as_boolean())
        if self.operator == "||":
            if self.left.evaluate(bindings).as_boolean():
                return Value(True)
            return Value(self.right.evaluate(bindings).as_boolean())

        left = self.left.evaluate(bindings)
        right = self.right.evaluate(bindings)
        op = self.operator
        if op == "==":
            return Value(left == right)
        if op == "!=":
            return Value(not left == right)
        if op in ("<", "<=", ">", ">="):
            cmp = left.compare(right)
            return Value({"<": cmp < 0, "<=": cmp <= 0, ">": cmp > 0, ">=": cmp >= 0}[op])
        if op == "in":
            return Value(_contains(right, left))
        if op == "+":
            return _add(left, right)
        return _arithmetic(op, left, right)

    def children(self) -> tuple[Expression, ...]:
        return (self.left, self.right)

    def __str__(self) -> str:
        prec = self.precedence
        # Comparisons do not chain; other operators are left-associative
        left_min = prec + 1 if prec == _PRECEDENCE["=="] else prec
        return f"{self._wrap(self.left, left_min)} {self.operator} {self._wrap(self.right, prec + 1)}"


@dataclass(frozen=True)
class IndexExpression(Expression):
    target: Expression
    index: Expression

    def evaluate(self, bindings: Bindings | None) -> Value:
        container = self.target.evaluate(bindings)
        index = self.index.evaluate(bindings)
        if container.is_map():
            if not index.is_string():
                raise EvaluationError(f"Map index must be a string, found {index.type_name}")
            return Value(container.value.get(index.value))
        if container.is_list() or container.is_string():
            if not index.is_numeric() or int(index.value) != index.value:
                raise EvaluationError(f"Index must be an integer, found {index}")
            position = int(index.value)
            if position < 0 or position >= len(container.value):
                raise EvaluationError(f"Index out of range: {position}")
            return Value(container.value[position])
        raise EvaluationError(f"Cannot index {container.type_name}")

    def children(self) -> tuple[Expression, ...]:
        return (self.target, self.index)

    def __str__(self) -> str:
        return f"{self._wrap(self.target, self.precedence)}[{self.index}]"


@dataclass(frozen=True)
class MemberExpression(Expression):
    target: Expression
    member: str

    def evaluate(self, bindings: Bindings | None) -> Value:
        container = self.target.evaluate(bindings)
        if not container.is_map():
            raise EvaluationError(
                f"Cannot read member \"{self.member}\" of {container.type_name}"
            )
        return Value(container.value.get(self.member))

    def children(self) -> tuple[Expression, ...]:
        return (self.target,)

    def __str__(self) -> str:
        return f"{self._wrap(self.target, self.precedence)}.{self.member}"


@dataclass(frozen=True)
class AssignExpression(Expression):
    """$variable = value. Evaluates to the assigned value."""
    variable: str
    value: Expression

    precedence = _PRECEDENCE["="]

    def evaluate(self, bindings: Bindings | None) -> Value:
        result = self.value.evaluate(bindings)
        if bindings is None:
            raise EvaluationError(f"No variables to assign ${self.variable} to")
        bindings[self.variable] = result.value
        return result

    def children(self) -> tuple[Expression, ...]:
        return (self.value,)

    def __str__(self) -> str:
        return f"${self.variable} = {self.value}"


def quote_string(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _contains(container: Value, item: Value) -> bool:
    if container.is_list():
        return any(Value(element) == item for element in container.value)
    if container.is_map():
        return item.is_string() and item.value in container.value
    if container.is_string():
        return str(item) in container.value
    raise EvaluationError(f"Operator \"in\" not supported for {container.type_name}")


def _add(left: Value, right: Value) -> Value:
    if left.is_numeric() and right.is_numeric():
        return Value(left.value + right.value)
    if left.is_string() or right.is_string():
        return Value(str(left) + str(right))
    if left.is_list() and right.is_list():
        return Value(list(left.value) + list(right.value))
    raise EvaluationError(f"Cannot add {left.type_name} and {right.type_name}")


def _arithmetic(op: str, left: Value, right: Value) -> Value:
    if not (left.is_numeric() and right.is_numeric()):
        raise EvaluationError(
            f"Operator \"{op}\" needs numbers, found {left.type_name} and {right.type_name}"
        )
    a, b = left.value, right.value
    if op == "-":
        return Value(a - b)
    if op == "*":
        return Value(a * b)
    if b == 0:
        raise EvaluationError("Division by zero")
    if op == "%":
        return Value(a % b)
    if isinstance(a, int) and isinstance(b, int) and a % b == 0:
        return Value(a // b)
    return Value(a / b)
