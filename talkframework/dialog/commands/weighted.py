"""<<random>> / <<or>> / <<endrandom>> blocks."""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from talkframework.dialog.model import Bindings, Command, NodeBody, NodePointer, Reply

DEFAULT_WEIGHT = 1.0


@dataclass(frozen=True)
class RandomClause:
    weight: float
    body: NodeBody


@dataclass(frozen=True)
class RandomCommand(Command):
    """
    Weighted choice between clauses.

    Each execution makes exactly one draw in [0, total weight) and runs
    the first clause whose cumulative weight exceeds the draw. Every
    command owns a generator; passing rng to execute() overrides it.
    """
    name = "random"

    clauses: tuple[RandomClause, ...]
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    @property
    def total_weight(self) -> float:
        return sum(clause.weight for clause in self.clauses)

    def read_variables(self) -> set[str]:
        names = set()
        for clause in self.clauses:
            names |= clause.body.read_variables()
        return names

    def write_variables(self) -> set[str]:
        names = set()
        for clause in self.clauses:
            names |= clause.body.write_variables()
        return names

    def node_pointers(self) -> list[NodePointer]:
        return [pointer for clause in self.clauses for pointer in clause.body.node_pointers()]

    def find_reply(self, reply_id: int) -> Reply | None:
        for clause in self.clauses:
            reply = clause.body.find_reply(reply_id)
            if reply is not None:
                return reply
        return None

    def select(self, rng: random.Random | None = None) -> RandomClause:
        """Draw one clause."""
        total = self.total_weight
        if total <= 0:
            return self.clauses[0]
        draw = (rng or self.rng).random() * total
        cumulative = 0.0
        for clause in self.clauses:
            cumulative += clause.weight
            if draw < cumulative:
                return clause
        # Rounding can leave the draw just past the last sum
        return self.clauses[-1]

    def execute(self, bindings: Bindings, output: NodeBody, rng: random.Random | None = None) -> None:
        self.select(rng).body.execute(bindings, output, rng)

    def to_script(self) -> str:
        parts = []
        for i, clause in enumerate(self.clauses):
            keyword = "random" if i == 0 else "or"
            weight = "" if clause.weight == DEFAULT_WEIGHT else f' weight="{format_weight(clause.weight)}"'
            parts.append(f"<<{keyword}{weight}>>\n{clause.body.to_script()}\n")
        parts.append("<<endrandom>>")
        return "".join(parts)


def format_weight(weight: float) -> str:
    if float(weight).is_integer():
        return str(int(weight))
    return repr(float(weight))
