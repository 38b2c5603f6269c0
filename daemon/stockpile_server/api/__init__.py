"""
Network surface for Stockpile.

The server speaks a line-oriented text protocol over TCP (default port
2377). See session/protocol.py for the message sequence.
"""

from .line_server import LineServer

__all__ = ["LineServer"]
