"""
Stockpile Server - Main entry point.

This module starts the Stockpile server with all components:
- Database (loaded from the entry file)
- Persistence writer loop (Database -> entry file)
- TCP line server (one ClientSession per connection)

Usage:
    stockpile-server
    python -m stockpile_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Exit codes:
    0 - clean stop (SIGINT/SIGTERM)
    1 - configuration error, startup failure (database unreadable,
        port bind failure) or a listener that died while serving

Invariants:
    - The database is loaded before the port is bound
    - Graceful shutdown closes every session before the final flush

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence with connected clients
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

import json_log_formatter

from .api import LineServer
from .config import ServerConfig
from .errors import StartupError
from .persist import PersistenceWriter
from .store import Database

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from the event loop
    logging.getLogger("asyncio").setLevel(logging.WARNING)


class Server:
    """Stockpile server orchestrator.

    Manages the lifecycle of all server components:
    - Database load
    - Persistence writer
    - TCP line server

    Attributes:
        config: Server configuration
        database: Shared database
        writer: Persistence writer
        line_server: TCP listener

    Example:
        >>> server = Server(config)
        >>> await server.start()   # returns once listening
        >>> await server.wait()    # until request_shutdown()
        >>> await server.stop()
    """

    def __init__(self, config: Optional[ServerConfig] = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._listener_failed = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.database: Optional[Database] = None
        self.writer: Optional[PersistenceWriter] = None
        self.line_server: Optional[LineServer] = None

        # Background tasks
        self._writer_task: Optional[asyncio.Task] = None
        self._serve_task: Optional[asyncio.Task] = None

    @property
    def port(self) -> Optional[int]:
        """Bound port, once listening."""
        return self.line_server.port if self.line_server else None

    async def start(self) -> None:
        """Load the database, start the writer and bind the listener.

        Raises:
            StartupError: If the database cannot be loaded or the port bound
        """
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting Stockpile server")
        self.config.log_config()

        try:
            self.database = Database.load(
                self.config.storage.db_path, self.config.storage.encoding
            )

            self.writer = PersistenceWriter(
                self.database,
                self.config.storage.db_path,
                interval_seconds=self.config.persistence.flush_interval_seconds,
                encoding=self.config.storage.encoding,
                flush_on_stop=self.config.persistence.flush_on_shutdown,
            )

            self.line_server = LineServer(
                self.database,
                host=self.config.network.host,
                port=self.config.network.port,
                encoding=self.config.storage.encoding,
                peer_queue_size=self.config.fanout.peer_queue_size,
                max_line_bytes=self.config.network.max_line_bytes,
            )
            await self.line_server.start()

            self._writer_task = asyncio.create_task(self.writer.start())
            self._serve_task = asyncio.create_task(self._serve(self.line_server))

            self._running = True
            logger.info("Stockpile server started successfully")

        except StartupError as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def _serve(self, line_server: LineServer) -> None:
        try:
            await line_server.serve_forever()
            self._listener_failed = True
        finally:
            # A dead listener ends the process
            self.request_shutdown()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        logger.info("Stopping Stockpile server")

        if self.line_server:
            await self.line_server.stop()

        if self._serve_task is not None:
            self._serve_task.cancel()
            await asyncio.gather(self._serve_task, return_exceptions=True)
            self._serve_task = None

        # The writer is never cancelled mid-flush; stop() wakes it and
        # waits for any write in progress before the final flush.
        if self.writer:
            await self.writer.stop()
        if self._writer_task is not None:
            await asyncio.gather(self._writer_task, return_exceptions=True)
            self._writer_task = None

        self._running = False
        logger.info("Stockpile server stopped")

    @property
    def listener_failed(self) -> bool:
        """Whether the accept loop ended on its own (not by shutdown)."""
        return self._listener_failed

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


async def run_server(server: Server) -> int:
    """Run a server until shutdown is requested.

    Returns:
        Process exit code
    """
    try:
        await server.start()
    except StartupError:
        return 1

    loop = asyncio.get_running_loop()

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        await server.wait()
    finally:
        await server.stop()
    return 1 if server.listener_failed else 0


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    server = Server(config)
    try:
        exit_code = asyncio.run(run_server(server))
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
