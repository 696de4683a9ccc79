"""
Conversation Memory per Chat Session

Memories are seeded lazily from the caller's prior turns the first time a
session is seen, then appended to (user turn, then assistant turn) after
each exchange. The store is injected into the chat service; the in-memory
implementation bounds growth with an idle TTL and LRU eviction.
"""

import time
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

USER = "user"
ASSISTANT = "assistant"


@dataclass
class ConversationTurn:
    """One message of a conversation."""
    role: str  # "user" or "assistant"
    text: str

    def to_dict(self) -> dict:
        return {"role": self.role, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationTurn":
        role = data.get("role") or data.get("type") or USER
        if role in ("human", "user"):
            role = USER
        elif role in ("ai", "assistant", "bot"):
            role = ASSISTANT
        return cls(role=role, text=data.get("text") or data.get("content") or "")


@dataclass
class _SessionEntry:
    turns: list[ConversationTurn]
    seeded: bool = False
    last_access: float = field(default_factory=time.time)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def in_use(self) -> bool:
        return self.lock.locked()


class SessionMemoryStore(ABC):
    """Interface for per-session conversation memory."""

    @abstractmethod
    def get_or_create(
        self,
        session_id: str,
        prior_turns: Iterable[ConversationTurn] = (),
    ) -> list[ConversationTurn]:
        """Return the session's turns, seeding from prior_turns on first use."""

    @abstractmethod
    def append(self, session_id: str, role: str, text: str) -> None:
        """Append one turn to an existing session."""

    @abstractmethod
    def history(self, session_id: str) -> list[ConversationTurn]:
        """Snapshot of the session's turns (empty for unknown sessions)."""

    @abstractmethod
    def evict(self, session_id: str) -> bool:
        """Drop a session. Returns False when it was not present."""

    @abstractmethod
    def evict_expired(self) -> int:
        """Drop idle sessions. Returns the number removed."""

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock serialising memory updates for one session."""


class InMemorySessionStore(SessionMemoryStore):
    """
    Process-local session memory with idle TTL and LRU eviction.

    Usage:
        store = InMemorySessionStore(ttl_seconds=3600, max_sessions=1000)
        async with store.lock(session_id):
            turns = store.get_or_create(session_id, prior_turns)
            ...
            store.append(session_id, "user", query)
            store.append(session_id, "assistant", answer)
    """

    def __init__(self, ttl_seconds: float = 24 * 3600, max_sessions: int = 10000):
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, _SessionEntry] = OrderedDict()

    def _touch(self, session_id: str) -> Optional[_SessionEntry]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        if time.time() - entry.last_access > self._ttl and not entry.in_use:
            self._sessions.pop(session_id, None)
            logger.debug(f"Session {session_id} expired")
            return None
        entry.last_access = time.time()
        self._sessions.move_to_end(session_id)
        return entry

    def _entry(self, session_id: str) -> _SessionEntry:
        entry = self._touch(session_id)
        if entry is None:
            self._evict_least_recent()
            entry = _SessionEntry(turns=[])
            self._sessions[session_id] = entry
        return entry

    def _evict_least_recent(self) -> None:
        # Sessions inside a locked exchange stay, even past capacity
        idle = [sid for sid, entry in self._sessions.items() if not entry.in_use]
        for oldest_id in idle:
            if len(self._sessions) < self._max_sessions:
                break
            del self._sessions[oldest_id]
            logger.info(f"Evicted least recently used session {oldest_id}")

    def get_or_create(
        self,
        session_id: str,
        prior_turns: Iterable[ConversationTurn] = (),
    ) -> list[ConversationTurn]:
        entry = self._entry(session_id)
        if not entry.seeded:
            entry.turns[:0] = list(prior_turns)
            entry.seeded = True
            logger.info(f"Created memory for session {session_id} with {len(entry.turns)} prior turns")
        return list(entry.turns)

    def append(self, session_id: str, role: str, text: str) -> None:
        entry = self._entry(session_id)
        entry.seeded = True
        entry.turns.append(ConversationTurn(role=role, text=text))

    def history(self, session_id: str) -> list[ConversationTurn]:
        entry = self._sessions.get(session_id)
        return list(entry.turns) if entry else []

    def evict(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def evict_expired(self) -> int:
        now = time.time()
        expired = [
            sid for sid, entry in self._sessions.items()
            if now - entry.last_access > self._ttl and not entry.in_use
        ]
        for sid in expired:
            self._sessions.pop(sid, None)
        if expired:
            logger.info(f"Evicted {len(expired)} expired sessions")
        return len(expired)

    def lock(self, session_id: str) -> asyncio.Lock:
        return self._entry(session_id).lock

    @property
    def size(self) -> int:
        """Return current number of sessions."""
        return len(self._sessions)
