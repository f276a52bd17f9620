"""<<set $variable = expression>>"""

from __future__ import annotations

import random
from dataclasses import dataclass

from talkengine.expressions import AssignExpression
from talkframework.dialog.model import Bindings, Command, NodeBody


@dataclass(frozen=True)
class SetCommand(Command):
    name = "set"

    expression: AssignExpression

    @property
    def variable(self) -> str:
        return self.expression.variable

    def read_variables(self) -> set[str]:
        return self.expression.value.variable_names()

    def write_variables(self) -> set[str]:
        return {self.expression.variable}

    def execute(self, bindings: Bindings, output: NodeBody, rng: random.Random | None = None) -> None:
        self.expression.evaluate(bindings)

    def apply(self, bindings: Bindings) -> None:
        """Run the assignment outside of node execution (chosen replies)."""
        self.expression.evaluate(bindings)

    def to_script(self) -> str:
        return f"<<set {self.expression}>>"
