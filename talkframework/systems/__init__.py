"""
Logic-only processors working on records.
"""

from talkframework.systems.variables import ChangeListener, VariableBindings, VariableStore

__all__ = [
    "VariableStore",
    "VariableBindings",
    "ChangeListener",
]
