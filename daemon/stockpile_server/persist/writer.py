"""
Periodic dirty-flush writer for Stockpile.

The PersistenceWriter runs as a background loop that, every flush
interval, asks the Database for a dirty snapshot and, if there is one,
rewrites the entry file with it.

Cycle:
    1. take_dirty_snapshot() - None means nothing changed, skip
    2. write_entry_file() in the default executor (blocking I/O)
    3. mark_flushed() - clears dirty only if nothing changed meanwhile

Invariants:
    - Only one writer per database file
    - A writer runs once; after stop() a later start() returns immediately
    - A failed write is logged and leaves the database dirty for retry
    - The loop survives write failures; only stop() or cancellation ends it
    - stop() wakes the loop at its wait point; a flush in progress is never
      abandoned, even if its task is cancelled

How to change safely:
    - Keep writes atomic (temp file + rename)
    - Never clear the dirty flag before the rename has succeeded
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from .entry_file import write_entry_file

if TYPE_CHECKING:
    from ..store import Database

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL_SECONDS = 15 * 60


class PersistenceWriter:
    """Flushes a dirty Database to its entry file on a fixed period.

    Attributes:
        database: Database to flush
        path: Entry file path
        interval_seconds: Seconds between flush attempts
        encoding: File text encoding

    Example:
        >>> writer = PersistenceWriter(db, "entries.db", interval_seconds=900)
        >>> task = asyncio.create_task(writer.start())
        >>> ...
        >>> await writer.stop()
    """

    def __init__(
        self,
        database: Database,
        path: str | Path,
        interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
        encoding: str = "utf-8",
        flush_on_stop: bool = True,
    ) -> None:
        """Initialize the writer.

        Args:
            database: Database to flush
            path: Entry file path
            interval_seconds: Seconds between flush attempts
            encoding: File text encoding
            flush_on_stop: Whether stop() performs one final flush
        """
        self.database = database
        self.path = Path(path)
        self.interval_seconds = interval_seconds
        self.encoding = encoding
        self.flush_on_stop = flush_on_stop

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._flush_lock = asyncio.Lock()
        self._flush_count = 0
        self._failure_count = 0
        self._last_flush_ts: Optional[float] = None

    @property
    def is_running(self) -> bool:
        """Whether the flush loop is running."""
        return self._running

    async def start(self) -> None:
        """Run the flush loop until stopped or cancelled."""
        if self._running:
            logger.warning("Persistence writer already running")
            return

        self._running = True
        self._task = asyncio.current_task()
        logger.info(
            "Starting persistence writer",
            extra={"path": str(self.path), "interval_seconds": self.interval_seconds},
        )

        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self.interval_seconds,
                    )
                except asyncio.TimeoutError:
                    await self.flush_now()
        except asyncio.CancelledError:
            logger.info("Persistence writer cancelled")
        finally:
            self._running = False
            self._task = None

    async def stop(self) -> None:
        """Stop the flush loop, then flush once more if configured.

        The loop is woken at its wait point rather than cancelled, so a
        flush already in progress completes before the final one starts.
        """
        self._running = False
        self._stop_event.set()
        task = self._task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

        logger.info("Stopping persistence writer")
        if self.flush_on_stop:
            await self.flush_now()

    async def flush_now(self) -> bool:
        """Run one flush cycle immediately.

        Returns:
            True if a file was written, False if the database was clean
            or the write failed
        """
        async with self._flush_lock:
            ticket = await self.database.take_dirty_snapshot()
            if ticket is None:
                logger.debug("Database clean, nothing to flush")
                return False

            loop = asyncio.get_running_loop()
            write = loop.run_in_executor(
                None, write_entry_file, self.path, ticket.entries, self.encoding
            )
            try:
                count = await asyncio.shield(write)
            except asyncio.CancelledError:
                # The thread cannot be stopped. Hold the flush lock until its
                # rename lands so no newer flush is overwritten by it.
                await asyncio.gather(write, return_exceptions=True)
                raise
            except OSError as e:
                self._failure_count += 1
                logger.error(
                    f"Failed to write database file {self.path}: {e}",
                    extra={"path": str(self.path), "failures": self._failure_count},
                )
                return False

            clean = await self.database.mark_flushed(ticket)
            self._flush_count += 1
            self._last_flush_ts = time.time()
            logger.info(
                f"Wrote {count} entries to {self.path}",
                extra={"path": str(self.path), "entries": count, "clean": clean},
            )
            return True

    def stats(self) -> dict[str, Any]:
        """Get writer statistics."""
        return {
            "running": self._running,
            "path": str(self.path),
            "interval_seconds": self.interval_seconds,
            "flushes": self._flush_count,
            "failures": self._failure_count,
            "last_flush_ts": self._last_flush_ts,
        }
