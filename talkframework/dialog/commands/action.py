"""<<action>> - a client-side action such as showing an image or opening a link."""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from talkframework.dialog.model import Bindings, Command, NodeBody
from talkframework.dialog.template import QUOTED_ESCAPES, TextTemplate


@dataclass(frozen=True)
class ActionCommand(Command):
    """
    Attributes:
        action_type: One of image, video, link, generic
        value: The action's main value (image URL, link target, ...)
        parameters: Any other attributes, by name
    """
    name = "action"

    action_type: str
    value: TextTemplate
    parameters: dict[str, TextTemplate] = field(default_factory=dict)

    def read_variables(self) -> set[str]:
        names = self.value.read_variables()
        for template in self.parameters.values():
            names |= template.read_variables()
        return names

    def execute(self, bindings: Bindings, output: NodeBody, rng: random.Random | None = None) -> None:
        output.add_command(self.resolve_in_reply(bindings))

    def resolve_in_reply(self, bindings: Bindings) -> ActionCommand:
        return ActionCommand(
            action_type=self.action_type,
            value=self.value.execute(bindings),
            parameters={key: t.execute(bindings) for key, t in self.parameters.items()},
        )

    def to_dict(self) -> dict[str, object]:
        """Plain data for a resolved action."""
        return {
            "type": self.action_type,
            "value": str(self.value),
            "parameters": {key: str(t) for key, t in self.parameters.items()},
        }

    def to_script(self) -> str:
        attrs = [f'type="{self.action_type}"', f'value="{self.value.to_script(QUOTED_ESCAPES)}"']
        attrs.extend(f'{key}="{t.to_script(QUOTED_ESCAPES)}"' for key, t in self.parameters.items())
        return f"<<action {' '.join(attrs)}>>"
