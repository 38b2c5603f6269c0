"""
Helpers for driving the line protocol from tests.
"""

import asyncio
from typing import List, Optional

from stockpile_server.session import BULK_DONE, HANDSHAKE_TOKEN


class LineClient:
    """Raw line-protocol client used to observe exact server output."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.reader = reader
        self.writer = writer

    @classmethod
    async def connect(cls, port: int) -> "LineClient":
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        return cls(reader, writer)

    async def read_line(self, timeout: float = 2.0) -> Optional[str]:
        """Next line without its terminator, or None at EOF."""
        raw = await asyncio.wait_for(self.reader.readline(), timeout)
        if not raw:
            return None
        return raw.decode("utf-8").rstrip("\n")

    async def read_bulk(self) -> List[str]:
        """Consume the handshake and return the snapshot lines."""
        assert await self.read_line() == HANDSHAKE_TOKEN
        entries = []
        while True:
            line = await self.read_line()
            assert line is not None, "EOF during bulk phase"
            if line == BULK_DONE:
                return entries
            entries.append(line)

    async def read_lines(self, count: int, timeout: float = 5.0) -> List[str]:
        return [await self.read_line(timeout) for _ in range(count)]

    async def send(self, line: str) -> None:
        self.writer.write((line + "\n").encode("utf-8"))
        await self.writer.drain()

    async def expect_silence(self, duration: float = 0.1) -> None:
        """Assert nothing arrives within duration."""
        try:
            raw = await asyncio.wait_for(self.reader.readline(), duration)
        except asyncio.TimeoutError:
            return
        raise AssertionError(f"Unexpected line from server: {raw!r}")

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll predicate until it holds or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0.01)
