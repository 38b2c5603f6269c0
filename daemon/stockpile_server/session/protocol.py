"""
Line protocol constants.

Server-to-client on connect:

    ACK_STOCKPILE_SERVER
    <entry wire form>        (zero or more)
    BULK_DONE
    <command line>           (zero or more, relayed from other clients)

Client-to-server after BULK_DONE: zero or more command lines.
"""

from __future__ import annotations

HANDSHAKE_TOKEN = "ACK_STOCKPILE_SERVER"
BULK_DONE = "BULK_DONE"
LINE_TERMINATOR = "\n"

DEFAULT_PORT = 2377
