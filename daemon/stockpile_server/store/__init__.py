"""
Shared database for Stockpile.

The Database is the single source of truth while the server runs; the
entry file on disk is a periodically refreshed copy of it.
"""

from .database import Database, FlushTicket

__all__ = ["Database", "FlushTicket"]
