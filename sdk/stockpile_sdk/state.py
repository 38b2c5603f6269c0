"""
Connection state events.

A ServerConnection reports its state to listeners as one of three
variants:

    Connected()          bulk snapshot received, updates will follow
    Disconnected()       the server closed the connection
    Error(message)       the connection failed with an I/O error

Example:
    >>> def on_state(state: ConnectionState) -> None:
    ...     if isinstance(state, Error):
    ...         print("connection failed:", state.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Connected:
    """The handshake and bulk snapshot completed."""


@dataclass(frozen=True)
class Disconnected:
    """The server ended the connection."""


@dataclass(frozen=True)
class Error:
    """The connection failed.

    Attributes:
        message: Description of the failure
    """

    message: str


ConnectionState = Union[Connected, Disconnected, Error]
