"""
Registry of live client sessions.

Invariants:
    - A session is registered from just after its socket is accepted until
      just before its socket is closed
    - broadcast() iterates a copy of the membership taken when it starts
    - The sender never receives its own line
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Iterator, List, Optional, Set

if TYPE_CHECKING:
    from .session import ClientSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Set of live ClientSessions used for fan-out.

    Example:
        >>> registry = SessionRegistry()
        >>> registry.add(session)
        >>> await registry.broadcast("+1|0|ax", exclude=session)
    """

    def __init__(self) -> None:
        self._sessions: Set[ClientSession] = set()

    def add(self, session: ClientSession) -> None:
        self._sessions.add(session)
        logger.debug(f"Registered session {session.session_id} ({len(self)} live)")

    def remove(self, session: ClientSession) -> None:
        self._sessions.discard(session)
        logger.debug(f"Unregistered session {session.session_id} ({len(self)} live)")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: object) -> bool:
        return session in self._sessions

    def __iter__(self) -> Iterator[ClientSession]:
        return iter(list(self._sessions))

    def peers_of(self, sender: Optional[ClientSession]) -> List[ClientSession]:
        """Sessions that should receive a line sent by sender.

        Sessions still in their bulk phase are excluded; they will see the
        line's effect in their snapshot instead.
        """
        return [s for s in self._sessions if s is not sender and s.ready]

    async def broadcast(self, line: str, exclude: Optional[ClientSession] = None) -> int:
        """Deliver line to every ready session except exclude.

        Deliveries to different peers proceed concurrently; each peer
        serializes its own writes.

        Args:
            line: Command line without newline
            exclude: The sending session

        Returns:
            Number of peers the line was handed to
        """
        peers = self.peers_of(exclude)
        if peers:
            await asyncio.gather(*(peer.deliver(line) for peer in peers))
        logger.debug(f"Relayed line to {len(peers)} peers")
        return len(peers)
