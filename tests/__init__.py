"""
Stockpile Test Suite.

This package contains:
- unit/: Unit tests (no sockets)
- integration/: Integration tests (real TCP on an ephemeral port)
"""
