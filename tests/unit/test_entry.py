"""
Unit tests for the inventory Entry type.

Tests cover:
- Wire form serialization and parsing
- Rejection of malformed wire forms
- Equality, ordering and hashing
- Missing flag and derived lowercase fields
"""

import random
import string

import pytest

from stockpile_server.errors import BadEntryEncoding
from stockpile_server.inventory import MISSING_FLAG, Entry


class TestEntryWireForm:
    """Tests for Entry.to_wire / Entry.from_wire."""

    def test_serialize(self):
        """Lengths and flags are lowercase hex."""
        assert Entry("foo", "kitchen", 0).to_wire() == "3|0|fookitchen"
        assert Entry("bar", "table", 1).to_wire() == "3|1|bartable"
        assert Entry("abcdefghijkl", "x", 255).to_wire() == "c|ff|abcdefghijklx"

    def test_parse(self):
        """Name is the first nameLen characters, location the rest."""
        entry = Entry.from_wire("4|1|bartable")
        assert entry.name == "bart"
        assert entry.location == "able"
        assert entry.flags == 1

    def test_parse_uppercase_hex(self):
        """Uppercase hex digits are accepted on input."""
        assert Entry.from_wire("A|FF|0123456789loc") == Entry("0123456789", "loc", 255)

    def test_parse_empty_location(self):
        """Name may take the whole field."""
        assert Entry.from_wire("2|0|ab") == Entry("ab", "", 0)

    def test_parse_empty_name_and_location(self):
        """Both text fields may be empty."""
        assert Entry.from_wire("0|0|") == Entry("", "", 0)

    def test_pipe_inside_text(self):
        """Only the first two '|' split fields."""
        entry = Entry("a|b", "c|d", 2)
        assert Entry.from_wire(entry.to_wire()) == entry

    def test_round_trip_random(self):
        """parse(serialize(e)) == e for random newline-free entries."""
        rng = random.Random(2377)
        alphabet = string.ascii_letters + string.digits + " |>+-äöü€"
        for _ in range(500):
            name = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 20)))
            location = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 20)))
            flags = rng.randrange(0, 2**31)
            entry = Entry(name, location, flags)
            assert Entry.from_wire(entry.to_wire()) == entry

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "3",
            "3|0",
            "zz|0|abc",
            "3|g|abc",
            "-1|0|abc",
            "+3|0|abc",
            " 3|0|abc",
            "|0|abc",
            "3||abc",
            "5|0|abc",
            "80000000|0|abc",
            "3|80000000|abc",
        ],
    )
    def test_rejects_malformed(self, text):
        """Malformed wire forms raise BadEntryEncoding."""
        with pytest.raises(BadEntryEncoding) as exc_info:
            Entry.from_wire(text)
        assert exc_info.value.code == "BAD_ENTRY_ENCODING"
        assert exc_info.value.text == text


class TestEntryValue:
    """Tests for Entry value semantics."""

    def test_equality_is_structural(self):
        assert Entry("a", "x", 0) == Entry("a", "x", 0)
        assert Entry("a", "x", 0) != Entry("a", "x", 1)
        assert Entry("a", "x", 0) != Entry("a", "y", 0)
        assert Entry("a", "x", 0) != Entry("b", "x", 0)

    def test_ordering(self):
        """Name first, then location, then flags."""
        entries = [
            Entry("b", "a", 0),
            Entry("a", "b", 1),
            Entry("a", "b", 0),
            Entry("a", "a", 5),
        ]
        assert sorted(entries) == [
            Entry("a", "a", 5),
            Entry("a", "b", 0),
            Entry("a", "b", 1),
            Entry("b", "a", 0),
        ]

    def test_hash_consistent_with_equality(self):
        assert hash(Entry("a", "x", 3)) == hash(Entry("a", "x", 3))
        assert len({Entry("a", "x", 0), Entry("a", "x", 0), Entry("a", "x", 1)}) == 2

    def test_immutable(self):
        entry = Entry("a", "x", 0)
        with pytest.raises(AttributeError):
            entry.name = "b"

    def test_lowercase_cache(self):
        """Lowercase forms are derived and ignored by equality."""
        entry = Entry("Drill", "Garage SHELF", 0)
        assert entry.name_lower == "drill"
        assert entry.location_lower == "garage shelf"
        assert "drill" not in entry.to_wire()

    def test_missing_flag(self):
        entry = Entry("a", "x", 0b110)
        assert not entry.missing

        flagged = entry.with_missing(True)
        assert flagged.missing
        assert flagged.flags == 0b110 | MISSING_FLAG
        assert entry.flags == 0b110

        assert flagged.with_missing(False) == entry

    def test_with_name_and_location(self):
        entry = Entry("a", "x", 1)
        assert entry.with_name("B") == Entry("B", "x", 1)
        assert entry.with_name("B").name_lower == "b"
        assert entry.with_location("Y").location_lower == "y"

    @pytest.mark.parametrize("flags", [-1, 2**31])
    def test_rejects_out_of_range_flags(self, flags):
        with pytest.raises(ValueError):
            Entry("a", "x", flags)

    def test_rejects_newline(self):
        with pytest.raises(ValueError):
            Entry("a\nb", "x", 0)
