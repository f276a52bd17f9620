"""
Runtime configuration.

One RuntimeConfig is shared by the script database, the dialogue
manager and the save manager. Values can be given as keyword
arguments or read from TALKSCRIPT_* environment variables.
"""

from __future__ import annotations

import os
import random
from pathlib import Path
from zoneinfo import ZoneInfo


class RuntimeConfig:
    """Configuration for the dialogue runtime."""

    def __init__(
        self,
        scripts_path: str | Path = "dialogues",
        saves_path: str | Path = "saves",
        default_time_zone: str = "UTC",
        random_seed: int | None = None,
        notify_listeners: bool = True,
        script_extension: str = ".dlb",
    ):
        self.scripts_path = Path(scripts_path)
        self.saves_path = Path(saves_path)
        self.default_time_zone = default_time_zone
        self.random_seed = random_seed
        self.notify_listeners = notify_listeners
        self.script_extension = script_extension

    @classmethod
    def from_env(cls, prefix: str = "TALKSCRIPT_") -> RuntimeConfig:
        """Build a config from environment variables, falling back to defaults."""
        kwargs = {}
        for key in ("scripts_path", "saves_path", "default_time_zone", "script_extension"):
            value = os.environ.get(prefix + key.upper())
            if value:
                kwargs[key] = value
        seed = os.environ.get(prefix + "RANDOM_SEED")
        if seed:
            kwargs["random_seed"] = int(seed)
        notify = os.environ.get(prefix + "NOTIFY_LISTENERS")
        if notify:
            kwargs["notify_listeners"] = notify.lower() in ("1", "true", "yes")
        return cls(**kwargs)

    @property
    def time_zone(self) -> ZoneInfo:
        return ZoneInfo(self.default_time_zone)

    def make_rng(self) -> random.Random | None:
        """
        Random source for weighted clauses.

        Returns None when no seed is configured, in which case every
        random command keeps using its own unseeded generator.
        """
        if self.random_seed is None:
            return None
        return random.Random(self.random_seed)
