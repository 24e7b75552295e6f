"""Per-connection conversation sessions and the store that holds them.

A ``Session`` owns one conversation: its message history (seeded with the
system prompt) and the ``busy`` flag that keeps a second turn from starting
while one is running.  Sessions are created when a connection opens and
deleted when it closes; nothing is persisted.

The store is an explicit, injectable object rather than module state, so
its lifetime is that of whoever owns it (the FastAPI app, the CLI, a test).
"""

from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from sql_agent.messages import Message, SystemMessage

logger = logging.getLogger(__name__)


@dataclass
class Session:
    id: str
    history: list[Message] = field(default_factory=list)
    busy: bool = False

    def append(self, message: Message) -> None:
        self.history.append(message)

    def get_history(self) -> list[Message]:
        """Return a snapshot of the history (later appends don't show up in it)."""
        return list(self.history)


class SessionStore(ABC):
    """Key-value store of live sessions."""

    @abstractmethod
    def create(self, system_prompt: str) -> Session:
        """Create a session with a fresh id and a seeded history."""

    @abstractmethod
    def get(self, session_id: str) -> Session | None:
        """Return the session, or ``None`` if it does not exist."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove the session.  Returns ``True`` if it existed."""


class InMemorySessionStore(SessionStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, system_prompt: str) -> Session:
        session = Session(
            id=str(uuid.uuid4()),
            history=[SystemMessage(content=system_prompt)],
        )
        with self._lock:
            self._sessions[session.id] = session
        logger.info("Session created: %s", session.id)
        return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info("Session deleted: %s", session_id)
        return removed is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
