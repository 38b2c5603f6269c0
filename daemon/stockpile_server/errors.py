"""
Error types for the Stockpile server.

This module defines all exception types raised by the server:
- StockpileError: Base exception
- BadEntryEncoding: An Entry wire form could not be parsed
- BadCommand: A command line could not be parsed or applied
- IOFault: Socket or file I/O failed
- StartupError: The server could not load its database or bind its port

Invariants:
    - All errors inherit from StockpileError
    - Malformed client input never raises anything but BadEntryEncoding
      or BadCommand
    - Errors carry the offending input in details for logging
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class StockpileError(Exception):
    """Base exception for all Stockpile server errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "STOCKPILE_ERROR"
        self.details = details or {}


class BadEntryEncoding(StockpileError):
    """An Entry wire form is invalid.

    Raised when:
    - The text does not split into three '|' separated fields
    - Either hex field does not parse
    - The name length exceeds the name+location field
    """

    def __init__(self, message: str, text: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="BAD_ENTRY_ENCODING",
            details={"text": text},
        )
        self.text = text


class BadCommand(StockpileError):
    """A command line is invalid.

    Raised when:
    - The line is empty or has an unknown opcode
    - The payload after the opcode is empty
    - A move header is missing or its length is out of range
    """

    def __init__(self, message: str, line: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="BAD_COMMAND",
            details={"line": line},
        )
        self.line = line


class IOFault(StockpileError):
    """Socket or file I/O failed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="IO_FAULT",
            details={"path": path},
        )
        self.path = path


class StartupError(StockpileError):
    """The server could not start (database unreadable, port bind failure)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="STARTUP_ERROR")
