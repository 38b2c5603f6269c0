"""
Fixtures for tests that run a real LineServer on a loopback socket.
"""

import asyncio

import pytest_asyncio

from stockpile_server.api import LineServer
from stockpile_server.store import Database

from .helpers import LineClient


@pytest_asyncio.fixture
async def start_server():
    """Factory starting LineServers on ephemeral loopback ports."""
    started = []

    async def _start(entries=(), **kwargs) -> LineServer:
        server = LineServer(Database(list(entries)), host="127.0.0.1", port=0, **kwargs)
        await server.start()
        task = asyncio.create_task(server.serve_forever())
        started.append((server, task))
        return server

    yield _start

    for server, task in started:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await server.stop()


@pytest_asyncio.fixture
async def connect():
    """Factory opening LineClients that are closed after the test."""
    clients = []

    async def _connect(port: int) -> LineClient:
        client = await LineClient.connect(port)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        await client.close()
