"""
Persistence for Stockpile.

This module keeps the entry file on disk in step with the Database:
- read_entry_file / write_entry_file: the on-disk text format
- PersistenceWriter: periodic dirty-flush background loop

Invariants:
    - Durability is "flush every interval if dirty", nothing stronger
    - The file is always either the previous or the new full snapshot
"""

from .entry_file import LoadResult, read_entry_file, write_entry_file
from .writer import DEFAULT_FLUSH_INTERVAL_SECONDS, PersistenceWriter

__all__ = [
    "PersistenceWriter",
    "DEFAULT_FLUSH_INTERVAL_SECONDS",
    "LoadResult",
    "read_entry_file",
    "write_entry_file",
]
