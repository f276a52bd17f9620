"""
Resource loading.

Exports:
- ScriptDatabase: Scripts of a directory tree, keyed by relative name
"""

from talkengine.resources.database import ScriptDatabase, ScriptLoader

__all__ = [
    "ScriptDatabase",
    "ScriptLoader",
]
