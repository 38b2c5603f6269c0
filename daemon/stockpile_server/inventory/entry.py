"""
Inventory Entry value type.

An Entry is one inventory record: a name, a location and a flags word.
Bit 0 of flags marks the item as missing.

Wire form (the "absolute representation"), used on the wire and on disk:

    HEX(len(name)) '|' HEX(flags) '|' name location

Example:
    >>> Entry("foo", "kitchen", 0).to_wire()
    '3|0|fookitchen'
    >>> Entry.from_wire("4|1|bartable")
    Entry(name='bart', location='able', flags=1)

Invariants:
    - Entries are immutable; "edits" build a new Entry
    - Equality, hashing and ordering use (name, location, flags) only
    - Lowercase forms are derived caches and are never serialized
    - Both numbers in the wire form are lowercase hexadecimal
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace

from ..errors import BadEntryEncoding

MISSING_FLAG = 0x1
MAX_FLAGS = 0x7FFFFFFF

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def _parse_hex(value: str, text: str, what: str) -> int:
    if not _HEX_RE.fullmatch(value):
        raise BadEntryEncoding(f"Invalid {what} in entry: {value!r}", text=text)
    number = int(value, 16)
    if number > MAX_FLAGS:
        raise BadEntryEncoding(f"{what} out of range in entry: {value!r}", text=text)
    return number


@dataclass(frozen=True, order=True)
class Entry:
    """A single inventory entry.

    Attributes:
        name: Item name
        location: Where the item is kept
        flags: Flag bits (bit 0 = missing)
        name_lower: Cached lowercase name
        location_lower: Cached lowercase location
    """

    name: str
    location: str
    flags: int = 0
    name_lower: str = field(init=False, repr=False, compare=False)
    location_lower: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not 0 <= self.flags <= MAX_FLAGS:
            raise ValueError(f"flags must be in [0, {MAX_FLAGS:#x}], got {self.flags}")
        if "\n" in self.name or "\n" in self.location:
            raise ValueError("Entry name and location must not contain newlines")
        object.__setattr__(self, "name_lower", self.name.lower())
        object.__setattr__(self, "location_lower", self.location.lower())

    @property
    def missing(self) -> bool:
        """Whether the item is flagged missing."""
        return bool(self.flags & MISSING_FLAG)

    def with_missing(self, missing: bool) -> Entry:
        """Return a copy with the missing bit set or cleared."""
        flags = (self.flags & ~MISSING_FLAG) | (MISSING_FLAG if missing else 0)
        return replace(self, flags=flags)

    def with_name(self, name: str) -> Entry:
        return replace(self, name=name)

    def with_location(self, location: str) -> Entry:
        return replace(self, location=location)

    def to_wire(self) -> str:
        """Serialize to the wire form."""
        return f"{len(self.name):x}|{self.flags:x}|{self.name}{self.location}"

    @classmethod
    def from_wire(cls, text: str) -> Entry:
        """Parse an Entry from its wire form.

        The text is split on the first two '|' characters, so the name and
        location may themselves contain '|'.

        Args:
            text: Wire form without a trailing newline

        Returns:
            Parsed Entry

        Raises:
            BadEntryEncoding: If the text is not a valid wire form
        """
        parts = text.split("|", 2)
        if len(parts) != 3:
            raise BadEntryEncoding("Entry must have three '|' separated fields", text=text)

        name_len = _parse_hex(parts[0], text, "name length")
        flags = _parse_hex(parts[1], text, "flags")

        body = parts[2]
        if name_len > len(body):
            raise BadEntryEncoding(
                f"Name length {name_len} exceeds field length {len(body)}", text=text
            )
        if "\n" in body:
            raise BadEntryEncoding("Entry must not contain newlines", text=text)

        return cls(name=body[:name_len], location=body[name_len:], flags=flags)

    def __str__(self) -> str:
        return f"Entry[name={self.name!r} location={self.location!r}]"
