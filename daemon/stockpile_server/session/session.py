"""
Per-connection client session.

Each accepted socket gets one ClientSession, which walks a small state
machine:

    HANDSHAKE  send ACK_STOCKPILE_SERVER, every entry, BULK_DONE
               (all under the database lock)           -> ACTIVE
    ACTIVE     read a line; valid command -> apply + fan out to peers;
               invalid line -> log and discard; EOF or I/O error -> CLOSING
    CLOSING    unregister; close socket                 (terminal)

Invariants:
    - Every client sees the handshake token first, then the snapshot, then
      BULK_DONE, before any relayed line
    - Commands are relayed while the database lock is held, so every peer
      sees relayed lines in application order
    - A session never receives its own command back
    - One writer lock per session; a peer never sees interleaved lines
    - A malformed line never closes the session

How to change safely:
    - Do not take the database lock from inside deliver(); it runs under it
    - Keep the bulk phase under the database lock or snapshots stop being
      atomic with respect to relayed updates
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from enum import Enum
from typing import Any, Optional

from ..errors import BadCommand, BadEntryEncoding
from ..store import Database
from .protocol import BULK_DONE, HANDSHAKE_TOKEN, LINE_TERMINATOR
from .registry import SessionRegistry

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)

# Errors that mean the socket is gone.
_IO_ERRORS = (OSError, ConnectionError, asyncio.IncompleteReadError)


class SessionState(Enum):
    """Lifecycle state of a ClientSession."""

    HANDSHAKE = "handshake"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class ClientSession:
    """Server-side handler bound to one accepted socket.

    Attributes:
        session_id: Process-unique session number
        peer: Remote address, for logging
        state: Current lifecycle state

    Example:
        >>> async def handle(reader, writer):
        ...     await ClientSession(reader, writer, db, registry).run()
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        database: Database,
        registry: SessionRegistry,
        encoding: str = "utf-8",
        peer_queue_size: int = 0,
    ) -> None:
        """Initialize the session.

        Args:
            reader: Stream to read client lines from
            writer: Stream to write server lines to
            database: Shared database
            registry: Live session registry used for fan-out
            encoding: Wire text encoding
            peer_queue_size: 0 for direct writes during fan-out; otherwise
                the bound of this session's outbound queue (lines beyond it
                are dropped)
        """
        self.reader = reader
        self.writer = writer
        self.database = database
        self.registry = registry
        self.encoding = encoding
        self.peer_queue_size = peer_queue_size

        self.session_id = next(_session_ids)
        self.peer = writer.get_extra_info("peername")
        self.state = SessionState.HANDSHAKE

        self._write_lock = asyncio.Lock()
        self._outbox: Optional[asyncio.Queue[str]] = (
            asyncio.Queue(maxsize=peer_queue_size) if peer_queue_size > 0 else None
        )
        self._outbox_task: Optional[asyncio.Task] = None
        self._closing = False

        self._lines_received = 0
        self._commands_applied = 0
        self._bad_lines = 0
        self._lines_relayed = 0
        self._lines_dropped = 0

    def __repr__(self) -> str:
        return f"ClientSession(id={self.session_id}, peer={self.peer}, state={self.state.value})"

    @property
    def ready(self) -> bool:
        """Whether the bulk phase is complete and relayed lines may be sent."""
        return self.state == SessionState.ACTIVE

    async def run(self) -> None:
        """Drive the session until the connection ends."""
        self.registry.add(self)
        logger.info(
            f"Session {self.session_id} opened for {self.peer}",
            extra={"session_id": self.session_id, "peer": str(self.peer)},
        )
        try:
            await self._handshake()
            await self._read_loop()
        except _IO_ERRORS as e:
            logger.warning(
                f"Session {self.session_id} I/O fault: {e}",
                extra={"session_id": self.session_id, "peer": str(self.peer)},
            )
        finally:
            await self.close()

    async def _handshake(self) -> None:
        async with self.database.snapshot() as entries:
            async with self._write_lock:
                self._write(HANDSHAKE_TOKEN)
                for entry in entries:
                    self._write(entry.to_wire())
                self._write(BULK_DONE)
                await self.writer.drain()
            # Join fan-out before releasing the lock so no command slips
            # between the snapshot and the first relayed line.
            self.state = SessionState.ACTIVE

        if self._outbox is not None:
            self._outbox_task = asyncio.create_task(self._drain_outbox(self._outbox))

        logger.debug(f"Session {self.session_id} sent snapshot of {len(entries)} entries")

    async def _read_loop(self) -> None:
        while self.state == SessionState.ACTIVE:
            try:
                raw = await self.reader.readline()
            except ValueError as e:
                # Line longer than the stream limit; the stream is unusable.
                logger.warning(f"Session {self.session_id} sent an oversized line: {e}")
                return

            if not raw:
                logger.debug(f"Session {self.session_id} reached EOF")
                return

            self._lines_received += 1
            try:
                line = raw.decode(self.encoding).rstrip("\r\n")
            except UnicodeDecodeError as e:
                self._bad_lines += 1
                logger.warning(f"Session {self.session_id} sent undecodable line: {e}")
                continue

            await self._handle_line(line)

    async def _handle_line(self, line: str) -> None:
        try:
            await self.database.apply(line, on_applied=self._fan_out)
        except (BadCommand, BadEntryEncoding) as e:
            self._bad_lines += 1
            logger.warning(
                f"Session {self.session_id} discarded line: {e.code}: {e.message}",
                extra={"session_id": self.session_id, "code": e.code, "line": line},
            )
            return
        self._commands_applied += 1

    async def _fan_out(self, line: str) -> None:
        await self.registry.broadcast(line, exclude=self)

    async def deliver(self, line: str) -> None:
        """Hand a relayed line to this session.

        Called by the registry while the database lock is held. Write
        failures close this session's socket but never propagate to the
        sender.
        """
        if not self.ready:
            return

        if self._outbox is not None:
            try:
                self._outbox.put_nowait(line)
            except asyncio.QueueFull:
                self._lines_dropped += 1
                logger.warning(
                    f"Session {self.session_id} outbound queue full, dropping line",
                    extra={"session_id": self.session_id, "dropped": self._lines_dropped},
                )
            return

        await self._send_relayed(line)

    async def send_line(self, line: str) -> None:
        """Write one line to the client under the session write lock."""
        async with self._write_lock:
            self._write(line)
            await self.writer.drain()

    async def _send_relayed(self, line: str) -> None:
        try:
            await self.send_line(line)
        except _IO_ERRORS as e:
            logger.warning(
                f"Relay to session {self.session_id} failed: {e}",
                extra={"session_id": self.session_id, "peer": str(self.peer)},
            )
            self._abort()
            return
        self._lines_relayed += 1

    async def _drain_outbox(self, outbox: asyncio.Queue[str]) -> None:
        while self.ready:
            line = await outbox.get()
            await self._send_relayed(line)

    def _write(self, line: str) -> None:
        self.writer.write((line + LINE_TERMINATOR).encode(self.encoding))

    def _abort(self) -> None:
        # The read loop notices the closed transport and runs close().
        self.state = SessionState.CLOSING
        self.writer.close()

    async def close(self) -> None:
        """Unregister the session and close its socket. Idempotent."""
        if self._closing:
            return
        self._closing = True
        self.state = SessionState.CLOSING
        self.registry.remove(self)

        if self._outbox_task is not None and self._outbox_task is not asyncio.current_task():
            self._outbox_task.cancel()
            await asyncio.gather(self._outbox_task, return_exceptions=True)

        self.writer.close()
        try:
            await self.writer.wait_closed()
        except _IO_ERRORS as e:
            logger.debug(f"Session {self.session_id} close error: {e}")

        self.state = SessionState.CLOSED
        logger.info(
            f"Session {self.session_id} closed",
            extra={"session_id": self.session_id, **self.stats()},
        )

    def stats(self) -> dict[str, Any]:
        """Get session statistics."""
        return {
            "lines_received": self._lines_received,
            "commands_applied": self._commands_applied,
            "bad_lines": self._bad_lines,
            "lines_relayed": self._lines_relayed,
            "lines_dropped": self._lines_dropped,
        }
