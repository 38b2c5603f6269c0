"""
TCP line server for Stockpile.

The LineServer owns the listening socket. Every accepted connection is
handed to a new ClientSession; the server keeps track of the session
tasks so it can close them all on shutdown.

Invariants:
    - One ClientSession (and one task) per accepted socket
    - stop() closes the listener first, then every live session
    - A bind failure surfaces from start() as StartupError

How to change safely:
    - Keep the accept callback thin; all protocol logic lives in the session
    - Test shutdown with connected clients
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Set

from ..errors import StartupError
from ..session import ClientSession, SessionRegistry
from ..store import Database

logger = logging.getLogger(__name__)


class LineServer:
    """Accepts TCP connections and runs a ClientSession for each.

    Attributes:
        database: Shared database
        registry: Live session registry
        host: Bind address
        port: Bind port (the bound port once started, if 0 was requested)

    Example:
        >>> server = LineServer(db, host="127.0.0.1", port=2377)
        >>> await server.start()
        >>> await server.serve_forever()
    """

    def __init__(
        self,
        database: Database,
        host: str = "0.0.0.0",
        port: int = 2377,
        encoding: str = "utf-8",
        peer_queue_size: int = 0,
        max_line_bytes: int = 1024 * 1024,
        registry: Optional[SessionRegistry] = None,
    ) -> None:
        """Initialize the server.

        Args:
            database: Shared database
            host: Address to bind
            port: Port to bind (0 for ephemeral)
            encoding: Wire text encoding
            peer_queue_size: Per-peer outbound queue bound (0 = direct writes)
            max_line_bytes: Stream limit for one client line
            registry: Session registry (a new one if not given)
        """
        self.database = database
        self.host = host
        self.port = port
        self.encoding = encoding
        self.peer_queue_size = peer_queue_size
        self.max_line_bytes = max_line_bytes
        self.registry = registry or SessionRegistry()

        self._server: Optional[asyncio.AbstractServer] = None
        self._session_tasks: Set[asyncio.Task] = set()
        self._accepted = 0

    @property
    def is_running(self) -> bool:
        """Whether the listener is open."""
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        """Bind the listening socket.

        Raises:
            StartupError: If the port cannot be bound
        """
        if self._server is not None:
            logger.warning("Line server already running")
            return

        try:
            self._server = await asyncio.start_server(
                self._handle_client,
                self.host,
                self.port,
                limit=self.max_line_bytes,
            )
        except OSError as e:
            raise StartupError(f"Cannot bind {self.host}:{self.port}: {e}") from e

        self.port = self._server.sockets[0].getsockname()[1]
        logger.info(
            f"Stockpile server listening on {self.host}:{self.port}",
            extra={"host": self.host, "port": self.port},
        )

    async def serve_forever(self) -> None:
        """Accept connections until cancelled or the listener fails."""
        if self._server is None:
            await self.start()
        server = self._server
        if server is None:
            raise RuntimeError("Line server has no listener after start()")

        try:
            await server.serve_forever()
        except asyncio.CancelledError:
            logger.info("Line server shutdown requested")
            raise
        except OSError as e:
            logger.error(f"Listener failed: {e}", exc_info=True)
        finally:
            await self.stop()

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self._accepted += 1
        task = asyncio.current_task()
        if task is not None:
            self._session_tasks.add(task)
        try:
            session = ClientSession(
                reader,
                writer,
                self.database,
                self.registry,
                encoding=self.encoding,
                peer_queue_size=self.peer_queue_size,
            )
            await session.run()
        finally:
            if task is not None:
                self._session_tasks.discard(task)

    async def stop(self) -> None:
        """Close the listener and every live session."""
        if self._server is None:
            return

        logger.info("Stopping line server")
        server, self._server = self._server, None
        server.close()

        sessions = list(self.registry)
        for session in sessions:
            await session.close()

        tasks = [t for t in self._session_tasks if t is not asyncio.current_task()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await server.wait_closed()
        logger.info(f"Line server stopped, closed {len(sessions)} sessions")

    def stats(self) -> dict[str, Any]:
        """Get server statistics."""
        return {
            "running": self.is_running,
            "host": self.host,
            "port": self.port,
            "accepted": self._accepted,
            "live_sessions": len(self.registry),
        }
