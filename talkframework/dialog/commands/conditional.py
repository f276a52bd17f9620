"""<<if>> / <<elseif>> / <<else>> / <<endif>> blocks."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from talkengine.expressions import Expression
from talkframework.dialog.model import Bindings, Command, NodeBody, NodePointer, Reply


@dataclass(frozen=True)
class IfClause:
    condition: Expression
    body: NodeBody


@dataclass(frozen=True)
class IfCommand(Command):
    """
    Ordered condition clauses and an optional else body.

    The first clause whose condition is true runs and the rest are
    skipped. Conditions never assign; the parser rejects that.
    """
    name = "if"

    clauses: tuple[IfClause, ...]
    else_body: Optional[NodeBody] = None

    @property
    def bodies(self) -> list[NodeBody]:
        bodies = [clause.body for clause in self.clauses]
        if self.else_body is not None:
            bodies.append(self.else_body)
        return bodies

    def read_variables(self) -> set[str]:
        names = set()
        for clause in self.clauses:
            names |= clause.condition.variable_names()
        for body in self.bodies:
            names |= body.read_variables()
        return names

    def write_variables(self) -> set[str]:
        names = set()
        for body in self.bodies:
            names |= body.write_variables()
        return names

    def node_pointers(self) -> list[NodePointer]:
        return [pointer for body in self.bodies for pointer in body.node_pointers()]

    def find_reply(self, reply_id: int) -> Reply | None:
        for body in self.bodies:
            reply = body.find_reply(reply_id)
            if reply is not None:
                return reply
        return None

    def execute(self, bindings: Bindings, output: NodeBody, rng: random.Random | None = None) -> None:
        for clause in self.clauses:
            if clause.condition.evaluate(bindings).as_boolean():
                clause.body.execute(bindings, output, rng)
                return
        if self.else_body is not None:
            self.else_body.execute(bindings, output, rng)

    def to_script(self) -> str:
        parts = []
        for i, clause in enumerate(self.clauses):
            keyword = "if" if i == 0 else "elseif"
            parts.append(f"<<{keyword} {clause.condition}>>\n{clause.body.to_script()}\n")
        if self.else_body is not None:
            parts.append(f"<<else>>\n{self.else_body.to_script()}\n")
        parts.append("<<endif>>")
        return "".join(parts)
