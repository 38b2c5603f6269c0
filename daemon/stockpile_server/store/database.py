"""
Shared in-memory inventory database.

The Database holds the ordered list of Entries that every client sees,
plus a dirty flag telling the persistence writer whether the list has
diverged from the file on disk.

Invariants:
    - The list is only touched while holding the database lock
    - Memory order == persisted order == snapshot stream order
    - dirty is True iff a command succeeded since the last completed write
    - A failed write never clears dirty

How to change safely:
    - Keep the lock a short critical section: one command + its fan-out
    - Never hand the inner list to callers; hand out tuples
    - Anything awaited under the lock must not re-acquire it
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Tuple

from ..errors import StartupError
from ..inventory import Entry, apply_command
from ..persist.entry_file import read_entry_file

logger = logging.getLogger(__name__)

# Awaited under the database lock after a command is applied.
AppliedHook = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class FlushTicket:
    """A snapshot taken for the persistence writer.

    Attributes:
        entries: Entries to write, in order
        version: Mutation counter at the time of the snapshot
    """

    entries: Tuple[Entry, ...]
    version: int


class Database:
    """Ordered, lock-guarded list of Entries with a dirty flag.

    Example:
        >>> db = Database([Entry("a", "x", 0)])
        >>> await db.apply(">6>1|0|ax1|0|by")
        >>> db.entries()
        (Entry(name='b', location='y', flags=0),)
        >>> db.is_dirty
        True
    """

    def __init__(self, entries: Optional[Iterable[Entry]] = None) -> None:
        """Initialize the database.

        Args:
            entries: Initial entries (not marked dirty)
        """
        self._entries: List[Entry] = list(entries or ())
        self._lock = asyncio.Lock()
        self._dirty = False
        self._version = 0

    @classmethod
    def load(cls, path: str | Path, encoding: str = "utf-8") -> Database:
        """Load a database from an entry file.

        A missing file is created empty. Unparseable lines are logged and
        skipped.

        Args:
            path: Entry file path
            encoding: File text encoding

        Returns:
            Loaded Database (clean)

        Raises:
            StartupError: If the file cannot be created or read
        """
        try:
            result = read_entry_file(path, encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise StartupError(f"Cannot load database {path}: {e}") from e

        if result.created:
            logger.info(f"Database file {path} did not exist, created empty")

        for lineno, text, reason in result.bad_lines:
            logger.warning(
                f"Skipping bad entry at {path}:{lineno}: {reason}",
                extra={"path": str(path), "line": lineno, "text": text},
            )

        logger.info(
            f"Loaded {len(result.entries)} entries from {path}",
            extra={
                "path": str(path),
                "entries": len(result.entries),
                "skipped": len(result.bad_lines),
            },
        )
        return cls(result.entries)

    @property
    def is_dirty(self) -> bool:
        """Whether the list has unflushed changes."""
        return self._dirty

    @property
    def version(self) -> int:
        """Number of commands applied since construction."""
        return self._version

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> Tuple[Entry, ...]:
        """Return a copy of the current entries."""
        return tuple(self._entries)

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[Tuple[Entry, ...]]:
        """Hold the lock and yield the current entries.

        No command can be applied while the block runs, so anything
        streamed inside it is atomic with respect to mutations.

        Example:
            >>> async with db.snapshot() as entries:
            ...     for entry in entries:
            ...         await send(entry.to_wire())
        """
        async with self._lock:
            yield tuple(self._entries)

    async def apply(self, line: str, on_applied: Optional[AppliedHook] = None) -> None:
        """Apply one command line under the lock.

        On success the dirty flag is set and on_applied (if given) is
        awaited while the lock is still held, so hooks observe commands
        in application order.

        Args:
            line: Command line without newline
            on_applied: Hook awaited with line after a successful apply

        Raises:
            BadCommand: If the line is not a valid command
            BadEntryEncoding: If an embedded Entry is invalid
        """
        async with self._lock:
            apply_command(self._entries, line)
            self._dirty = True
            self._version += 1
            if on_applied is not None:
                await on_applied(line)

    async def take_dirty_snapshot(self) -> Optional[FlushTicket]:
        """Snapshot the entries for writing if the database is dirty.

        The dirty flag is NOT cleared here; call mark_flushed() once the
        write has completed.

        Returns:
            FlushTicket, or None if there is nothing to write
        """
        async with self._lock:
            if not self._dirty:
                return None
            return FlushTicket(entries=tuple(self._entries), version=self._version)

    async def mark_flushed(self, ticket: FlushTicket) -> bool:
        """Record that ticket was written to disk.

        Clears the dirty flag unless commands were applied after the
        ticket was taken.

        Returns:
            True if the database is now clean
        """
        async with self._lock:
            if self._version == ticket.version:
                self._dirty = False
            return not self._dirty
