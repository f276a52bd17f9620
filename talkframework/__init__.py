"""
talkscript dialogue framework.

Provides the dialogue system built on top of talkengine:
- Components (data-only, pydantic records)
- Systems (the variable store)
- Dialog (script model, parser, execution, manager)
- Save (variable persistence)
"""
