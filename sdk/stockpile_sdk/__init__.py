"""
Stockpile Python SDK - Client library for the Stockpile inventory server.

This SDK speaks the Stockpile line protocol:
- ServerConnection: connect, fetch the bulk snapshot, receive updates
- Connected / Disconnected / Error: state events

Example:
    >>> from stockpile_sdk import ServerConnection
    >>>
    >>> async with ServerConnection("localhost") as conn:
    ...     conn.add_update_listener(print)
    ...     await conn.send("+4|1|bartable")

Invariants:
    - The SDK passes entry and command lines through verbatim
    - Wire encoding must match the server's

Version: 1.0.0
"""

__version__ = "1.0.0"

from .client import BULK_DONE, DEFAULT_PORT, HANDSHAKE_TOKEN, ServerConnection
from .errors import (
    AlreadyConnected,
    HandshakeFailed,
    InvalidArgument,
    IOFault,
    NotConnected,
    StockpileClientError,
)
from .state import Connected, ConnectionState, Disconnected, Error

__all__ = [
    # Version
    "__version__",
    # Client
    "ServerConnection",
    "HANDSHAKE_TOKEN",
    "BULK_DONE",
    "DEFAULT_PORT",
    # State
    "ConnectionState",
    "Connected",
    "Disconnected",
    "Error",
    # Errors
    "StockpileClientError",
    "HandshakeFailed",
    "NotConnected",
    "AlreadyConnected",
    "InvalidArgument",
    "IOFault",
]
