"""Fixed names and markers of the dialogue script format."""

import re

NODE_SEPARATOR = "==="
HEADER_SEPARATOR = "---"
PATH_SEPARATOR = "/"
SCRIPT_EXTENSION = ".dlb"

START_NODE_ID = "start"
END_NODE_ID = "end"

# User statement for a reply without statement
AUTOFORWARD = "AUTOFORWARD"

DEFAULT_DIALOGUE_NAME = "undefined"

NODE_NAME_PATTERN = r"[A-Za-z0-9_-]+"
DIALOGUE_NAME_PATTERN = rf"({NODE_NAME_PATTERN}/)*{NODE_NAME_PATTERN}"
EXTERNAL_POINTER_PATTERN = rf"/?((\.\.|\.|{NODE_NAME_PATTERN})/)*{NODE_NAME_PATTERN}\.{NODE_NAME_PATTERN}"
VARIABLE_NAME_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"

NODE_NAME_RE = re.compile(NODE_NAME_PATTERN)
DIALOGUE_NAME_RE = re.compile(DIALOGUE_NAME_PATTERN)
EXTERNAL_POINTER_RE = re.compile(EXTERNAL_POINTER_PATTERN)
VARIABLE_NAME_RE = re.compile(VARIABLE_NAME_PATTERN)

# Commands allowed in each part of a node
BODY_COMMANDS = ("action", "if", "random", "set")
REPLY_STATEMENT_COMMANDS = ("input",)
REPLY_COMMANDS = ("action", "set")

ACTION_TYPES = ("image", "video", "link", "generic")
INPUT_TYPES = ("email", "text", "longtext", "numeric", "set", "time")

TIME_NOW = "now"


def is_end_id(node_id: str) -> bool:
    return node_id.lower() == END_NODE_ID
