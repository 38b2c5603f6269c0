"""
Error types for the Stockpile SDK.

This module defines all exception types raised by the SDK:
- StockpileClientError: Base exception
- HandshakeFailed: The peer is not a Stockpile server
- NotConnected: An operation needs an open connection
- AlreadyConnected: A connection object connects at most once
- InvalidArgument: A caller passed an unusable value
- IOFault: Socket I/O failed

Invariants:
    - All errors inherit from StockpileClientError
    - Errors include context for debugging
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class StockpileClientError(Exception):
    """Base exception for all Stockpile SDK errors.

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
        self.code = code or "STOCKPILE_CLIENT_ERROR"
        self.details = details or {}


class HandshakeFailed(StockpileClientError):
    """The server did not complete the Stockpile handshake.

    Raised when:
    - The first line is not the handshake token
    - The connection ends before the bulk snapshot is complete
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        received: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="HANDSHAKE_FAILED",
            details={"address": address, "received": received},
        )
        self.address = address
        self.received = received


class NotConnected(StockpileClientError):
    """The connection is not open."""

    def __init__(self, message: str = "Not connected to a Stockpile server") -> None:
        super().__init__(message, code="NOT_CONNECTED")


class AlreadyConnected(StockpileClientError):
    """connect_and_fetch_snapshot() was called twice."""

    def __init__(self, message: str = "Cannot connect more than once") -> None:
        super().__init__(message, code="ALREADY_CONNECTED")


class InvalidArgument(StockpileClientError):
    """An argument is unusable (for example an empty command line)."""

    def __init__(self, message: str, argument: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="INVALID_ARGUMENT",
            details={"argument": argument},
        )
        self.argument = argument


class IOFault(StockpileClientError):
    """Socket I/O failed."""

    def __init__(self, message: str, address: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="IO_FAULT",
            details={"address": address},
        )
        self.address = address
