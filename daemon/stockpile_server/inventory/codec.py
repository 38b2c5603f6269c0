"""
Command codec for inventory mutations.

A command is a single line that mutates an ordered list of Entries:

    +E              append Entry E
    -E              remove the first Entry equal to E (no-op if absent)
    >LEN>E1E2       replace every Entry equal to E1 with E2

LEN is the DECIMAL character length of E1's wire form, while the lengths
inside each Entry are hexadecimal. Both conventions are part of the wire
format and must not be unified.

Invariants:
    - apply_command either fully applies a command or raises and leaves
      the list untouched
    - Entries are parsed before the list is touched
    - Duplicates are allowed; matching is structural equality

How to change safely:
    - New opcodes must be single characters outside '+-><'
    - Keep the move length decimal; deployed clients emit it that way
"""

from __future__ import annotations

from typing import List

from ..errors import BadCommand
from .entry import Entry

ADD = "+"
REMOVE = "-"
MOVE = ">"

OPCODES = frozenset((ADD, REMOVE, MOVE))


def add_command(entry: Entry) -> str:
    """Build a line that appends entry."""
    return ADD + entry.to_wire()


def remove_command(entry: Entry) -> str:
    """Build a line that removes the first occurrence of entry."""
    return REMOVE + entry.to_wire()


def move_command(old: Entry, new: Entry) -> str:
    """Build a line that replaces every occurrence of old with new."""
    old_wire = old.to_wire()
    return f"{MOVE}{len(old_wire)}{MOVE}{old_wire}{new.to_wire()}"


def _parse_move(payload: str, line: str) -> tuple[Entry, Entry]:
    cutoff = payload.find(MOVE)
    if cutoff == -1:
        raise BadCommand("Invalid move format: missing length separator", line=line)

    length_field = payload[:cutoff]
    if not length_field.isascii() or not length_field.isdigit():
        raise BadCommand(f"Invalid move length: {length_field!r}", line=line)

    old_len = int(length_field)
    start = cutoff + 1
    if start + old_len > len(payload):
        raise BadCommand("Corrupted move format: length overflows payload", line=line)

    old = Entry.from_wire(payload[start:start + old_len])
    new = Entry.from_wire(payload[start + old_len:])
    return old, new


def apply_command(entries: List[Entry], line: str) -> None:
    """Apply one command line to entries in place.

    Args:
        entries: Ordered list of Entries to mutate
        line: Command line without its trailing newline

    Raises:
        BadCommand: If the line is not a well-formed command
        BadEntryEncoding: If an embedded Entry does not parse
    """
    if not line:
        raise BadCommand("Command line is empty", line=line)

    opcode, payload = line[0], line[1:]
    if opcode not in OPCODES:
        raise BadCommand(f"{opcode!r} is not a valid command", line=line)
    if not payload:
        raise BadCommand("Entry string empty", line=line)

    if opcode == ADD:
        entries.append(Entry.from_wire(payload))
    elif opcode == REMOVE:
        target = Entry.from_wire(payload)
        if target in entries:
            entries.remove(target)
    else:
        old, new = _parse_move(payload, line)
        for i, current in enumerate(entries):
            if current == old:
                entries[i] = new
