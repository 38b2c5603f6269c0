"""
Inventory model for Stockpile.

This module contains the Entry value type and the command codec that
mutates ordered lists of Entries:
- Entry: immutable (name, location, flags) record with a text wire form
- apply_command: parse and apply one '+', '-' or '>' command line
- add_command / remove_command / move_command: build command lines

Invariants:
    - The wire form is the only serialized representation of an Entry
    - Commands are single lines; Entries never contain newlines
"""

from .codec import (
    ADD,
    MOVE,
    REMOVE,
    add_command,
    apply_command,
    move_command,
    remove_command,
)
from .entry import MISSING_FLAG, Entry

__all__ = [
    # Model
    "Entry",
    "MISSING_FLAG",
    # Codec
    "apply_command",
    "add_command",
    "remove_command",
    "move_command",
    "ADD",
    "REMOVE",
    "MOVE",
]
