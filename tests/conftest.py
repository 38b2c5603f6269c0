"""
Shared pytest fixtures for Stockpile tests.
"""

import asyncio
import os
import tempfile
import threading
import time

import pytest

from stockpile_server.persist import entry_file, writer as writer_module


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    """Provide a path for an entry file (not created)."""
    return os.path.join(temp_dir, "entries.db")


class FakeWriter:
    """In-memory stand-in for asyncio.StreamWriter."""

    def __init__(self, fail_with=None):
        self.buffer = bytearray()
        self.fail_with = fail_with
        self.closed = False
        self.drain_gate = None

    def write(self, data):
        self.buffer.extend(data)

    async def drain(self):
        if self.fail_with is not None:
            raise self.fail_with
        if self.drain_gate is not None:
            await self.drain_gate.wait()

    def close(self):
        self.closed = True

    def is_closing(self):
        return self.closed

    async def wait_closed(self):
        return None

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return ("127.0.0.1", 40000)
        return default

    def lines(self):
        return self.buffer.decode("utf-8").splitlines()


@pytest.fixture
def fake_writer():
    """Provide a FakeWriter."""
    return FakeWriter()


@pytest.fixture
def make_reader():
    """Build a StreamReader pre-fed with lines and EOF."""

    def _make(*lines, eof=True):
        reader = asyncio.StreamReader()
        for line in lines:
            reader.feed_data((line + "\n").encode("utf-8"))
        if eof:
            reader.feed_eof()
        return reader

    return _make


@pytest.fixture
def make_writer():
    """Build FakeWriters (optionally failing on drain)."""
    return FakeWriter


class SlowFirstWrite:
    """Replaces the writer's file write; the first call blocks its thread."""

    def __init__(self, delay):
        self.delay = delay
        self.started = threading.Event()
        self.calls = []

    def __call__(self, path, entries, encoding="utf-8"):
        entries = list(entries)
        self.calls.append(entries)
        if len(self.calls) == 1:
            self.started.set()
            time.sleep(self.delay)
        return entry_file.write_entry_file(path, entries, encoding)

    async def wait_started(self, timeout=2.0):
        deadline = time.monotonic() + timeout
        while not self.started.is_set():
            if time.monotonic() > deadline:
                raise AssertionError("write never started")
            await asyncio.sleep(0.005)


@pytest.fixture
def slow_first_write(monkeypatch):
    """Make the persistence writer's first file write take 0.3s."""
    slow = SlowFirstWrite(0.3)
    monkeypatch.setattr(writer_module, "write_entry_file", slow)
    return slow
