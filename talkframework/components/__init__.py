"""
Data-only records.

Records hold data only. Logic lives in systems, not in records.
"""

from talkframework.components.variables import (
    ChangeSource,
    Clear,
    Put,
    Remove,
    User,
    Variable,
    VariableStoreChange,
)

__all__ = [
    "ChangeSource",
    "User",
    "Variable",
    # Changes
    "VariableStoreChange",
    "Put",
    "Remove",
    "Clear",
]
