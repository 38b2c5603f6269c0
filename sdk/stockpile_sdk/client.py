"""
Stockpile client connection.

This module provides the client side of the Stockpile line protocol:
- ServerConnection: connect, receive the bulk snapshot, then receive
  relayed updates and send local ones

Example:
    >>> conn = ServerConnection("localhost")
    >>> conn.add_update_listener(lambda line: print("update:", line))
    >>> conn.add_state_listener(lambda state: print("state:", state))
    >>> snapshot = await conn.connect_and_fetch_snapshot()
    >>> await conn.send("+4|1|bartable")

Invariants:
    - The first server line must be the handshake token, else the socket
      is closed and HandshakeFailed is raised
    - Connected is emitted once, after BULK_DONE, before any update
    - Remote EOF emits Disconnected; an I/O failure emits Error(message)
    - Sends are serialized by a write lock; lines never interleave
    - A connection object connects at most once
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

from .errors import AlreadyConnected, HandshakeFailed, InvalidArgument, IOFault, NotConnected
from .state import Connected, ConnectionState, Disconnected, Error

logger = logging.getLogger(__name__)

HANDSHAKE_TOKEN = "ACK_STOCKPILE_SERVER"
BULK_DONE = "BULK_DONE"
DEFAULT_PORT = 2377

UpdateListener = Callable[[str], Union[None, Awaitable[None]]]
StateListener = Callable[[ConnectionState], Union[None, Awaitable[None]]]


class ServerConnection:
    """Connection to a Stockpile server.

    Attributes:
        host: Server hostname
        port: Server port
        encoding: Wire text encoding (must match the server)
    """

    def __init__(self, host: str, port: int = DEFAULT_PORT, encoding: str = "utf-8") -> None:
        """Create a connection object without connecting.

        Args:
            host: Server hostname
            port: Server port
            encoding: Wire text encoding
        """
        self.host = host
        self.port = port
        self.encoding = encoding

        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock = asyncio.Lock()
        self._listener_task: Optional[asyncio.Task] = None
        self._attempted = False

        self._update_listeners: List[UpdateListener] = []
        self._state_listeners: List[StateListener] = []

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        """Whether the socket is open."""
        return self._writer is not None and not self._writer.is_closing()

    async def __aenter__(self) -> ServerConnection:
        await self.connect_and_fetch_snapshot()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def add_update_listener(self, listener: UpdateListener) -> None:
        """Register a callable invoked with every relayed line."""
        self._update_listeners.append(listener)

    def remove_update_listener(self, listener: UpdateListener) -> None:
        self._update_listeners.remove(listener)

    def add_state_listener(self, listener: StateListener) -> None:
        """Register a callable invoked with every state change."""
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.remove(listener)

    async def connect_and_fetch_snapshot(self) -> List[str]:
        """Connect, verify the handshake and collect the bulk snapshot.

        Returns:
            Entry wire forms sent before BULK_DONE, in server order

        Raises:
            AlreadyConnected: If called more than once
            HandshakeFailed: If the peer is not a Stockpile server
            IOFault: If the connection cannot be opened or read
        """
        if self._attempted:
            raise AlreadyConnected()
        self._attempted = True

        try:
            reader, self._writer = await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            raise IOFault(f"Cannot connect to {self.address}: {e}", address=self.address) from e

        try:
            first = await self._read_line(reader)
            if first != HANDSHAKE_TOKEN:
                raise HandshakeFailed(
                    "Handshake with server failed", address=self.address, received=first
                )

            snapshot: List[str] = []
            while True:
                line = await self._read_line(reader)
                if line is None:
                    raise HandshakeFailed(
                        "Server closed the connection during the bulk snapshot",
                        address=self.address,
                    )
                if line == BULK_DONE:
                    break
                snapshot.append(line)
        except HandshakeFailed:
            await self._close_transport()
            raise
        except (OSError, ValueError) as e:
            await self._close_transport()
            raise IOFault(
                f"Reading snapshot from {self.address} failed: {e}", address=self.address
            ) from e

        logger.info(
            f"Connected to {self.address}, snapshot of {len(snapshot)} entries",
            extra={"address": self.address, "entries": len(snapshot)},
        )
        await self._notify_state(Connected())
        self._listener_task = asyncio.create_task(self._listen(reader))
        return snapshot

    async def send(self, line: str) -> None:
        """Send one command line to the server.

        Args:
            line: Command line without newline

        Raises:
            InvalidArgument: If line is empty or contains a newline
            NotConnected: If the socket is absent or closed
            IOFault: If the write fails
        """
        if not line:
            raise InvalidArgument("Update to server cannot be empty", argument="line")
        if "\n" in line or "\r" in line:
            raise InvalidArgument("Update must be a single line", argument="line")
        writer = self._writer
        if writer is None or writer.is_closing():
            raise NotConnected()

        async with self._write_lock:
            try:
                writer.write((line + "\n").encode(self.encoding))
                await writer.drain()
            except OSError as e:
                raise IOFault(f"Send to {self.address} failed: {e}", address=self.address) from e

    async def close(self) -> None:
        """Close the connection. No state event is emitted."""
        task = self._listener_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self._close_transport()

    async def _read_line(self, reader: asyncio.StreamReader) -> Optional[str]:
        raw = await reader.readline()
        if not raw:
            return None
        return raw.decode(self.encoding).rstrip("\r\n")

    async def _listen(self, reader: asyncio.StreamReader) -> None:
        try:
            while True:
                line = await self._read_line(reader)
                if line is None:
                    logger.info(f"Server {self.address} closed the connection")
                    await self._close_transport()
                    await self._notify_state(Disconnected())
                    return
                await self._notify_update(line)
        except (OSError, ValueError) as e:
            logger.warning(f"Connection to {self.address} failed: {e}")
            await self._notify_state(Error(str(e)))
        finally:
            await self._close_transport()

    async def _notify_update(self, line: str) -> None:
        for listener in list(self._update_listeners):
            await self._call_listener(listener, line)

    async def _notify_state(self, state: ConnectionState) -> None:
        for listener in list(self._state_listeners):
            await self._call_listener(listener, state)

    async def _call_listener(self, listener: Callable[[Any], Any], arg: Any) -> None:
        try:
            result = listener(arg)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Listener {listener!r} failed")

    async def _close_transport(self) -> None:
        writer = self._writer
        if writer is None or writer.is_closing():
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error closing connection to {self.address}: {e}")
