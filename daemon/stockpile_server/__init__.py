"""
Stockpile Server - multi-user inventory synchronization service.

A central server holds a flat list of inventory entries. Clients connect
over TCP, receive the current list, and from then on every change one
client makes is relayed to all the others. The list is flushed to a text
file on disk whenever it has changed, on a fixed period.

Architecture:
    Client A ──(+E / -E / >LEN>E1E2)──▶ ClientSession
                                            │ apply, under the database lock
                                            ▼
    Client B ◀──(relayed line)────────── Database ──(every N s, if dirty)──▶ entries.db

Invariants:
    - The in-memory Database is the source of truth while running
    - Relay order equals application order for every client
    - A client never receives its own command back
    - The file on disk is always a complete snapshot

How to change safely:
    - The wire format is shared with deployed clients; extend, never alter
    - Keep the move header length decimal and Entry lengths hexadecimal
"""

from ._version import __version__

__all__ = ["__version__"]
