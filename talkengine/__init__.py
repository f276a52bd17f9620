"""
talkengine - generic runtime infrastructure for dialogue scripts.

Holds the pieces that know nothing about dialogue structure:
configuration, records, the event bus, the expression language
and the script database.
"""

__version__ = "0.1.0"
