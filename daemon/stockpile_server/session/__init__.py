"""
Client sessions for Stockpile.

This module handles one TCP connection per ClientSession:
- Handshake and bulk snapshot
- Reading and applying client commands
- Relaying applied commands to every other session

Invariants:
    - Relay order equals application order for every receiver
    - The sender is never echoed its own command
"""

from .protocol import BULK_DONE, DEFAULT_PORT, HANDSHAKE_TOKEN
from .registry import SessionRegistry
from .session import ClientSession, SessionState

__all__ = [
    "ClientSession",
    "SessionState",
    "SessionRegistry",
    "HANDSHAKE_TOKEN",
    "BULK_DONE",
    "DEFAULT_PORT",
]
