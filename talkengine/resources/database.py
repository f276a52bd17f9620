"""
Script Database.

Handles loading of script files from a directory tree. Each script is
stored under its slash-separated path relative to the root, without
extension ("common/bye" for common/bye.dlb).

The database does not know the script format: a loader callable turns
(name, text) into a script object. Files that fail to load are logged,
recorded in errors and announced with ScriptEvent.SCRIPT_FAILED.
"""

import logging
from pathlib import Path
from typing import Callable, Generic, Iterator, TypeVar

from talkengine.core.events import EventBus, ScriptEvent

T = TypeVar('T')

ScriptLoader = Callable[[str, str], T]


class ScriptDatabase(Generic[T]):
    """
    Central storage for loaded scripts.
    """

    def __init__(
        self,
        scripts_path: Path | str,
        loader: ScriptLoader,
        extension: str = ".dlb",
        events: EventBus | None = None,
        load_errors: tuple[type[Exception], ...] = (OSError, ValueError),
    ):
        self._scripts_path = Path(scripts_path)
        self._loader = loader
        self._extension = extension
        self._load_errors = load_errors
        self.events = events

        # Data stores
        self.scripts: dict[str, T] = {}
        self.errors: dict[str, Exception] = {}

        self.logger = logging.getLogger(__name__)

    def load_all(self) -> None:
        """Load every script under the root, replacing what was loaded before."""
        self.scripts = {}
        self.errors = {}

        if not self._scripts_path.exists():
            self.logger.warning(f"Scripts directory not found: {self._scripts_path}")
        else:
            for file_path in sorted(self._scripts_path.rglob(f"*{self._extension}")):
                if file_path.is_file():
                    self._load_file(file_path)

        self.logger.info(
            f"Loaded {len(self.scripts)} scripts, "
            f"{len(self.errors)} failed."
        )
        if self.events:
            self.events.publish(
                ScriptEvent.LOAD_COMPLETED,
                loaded=len(self.scripts),
                failed=len(self.errors),
            )

    def script_name(self, file_path: Path) -> str:
        """Name of the script stored in a file under the root."""
        return file_path.relative_to(self._scripts_path).with_suffix("").as_posix()

    def _load_file(self, file_path: Path) -> None:
        name = self.script_name(file_path)
        try:
            text = file_path.read_text(encoding="utf-8")
            script = self._loader(name, text)
        except self._load_errors as e:
            self.logger.error(f"Failed to load {file_path}: {e}")
            self.errors[name] = e
            if self.events:
                self.events.publish(ScriptEvent.SCRIPT_FAILED, name=name, path=file_path, error=e)
            return

        self.scripts[name] = script
        self.logger.debug(f"Loaded script {name} from {file_path}")
        if self.events:
            self.events.publish(ScriptEvent.SCRIPT_LOADED, name=name, path=file_path, script=script)

    def get(self, name: str) -> T | None:
        return self.scripts.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self.scripts)

    def __contains__(self, name: object) -> bool:
        return name in self.scripts

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.scripts)
