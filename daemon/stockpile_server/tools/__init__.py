"""
Operational tools for Stockpile.

- db_cli: Inspect and seed entry files offline
"""

from .db_cli import DbFileCLI

__all__ = ["DbFileCLI"]
