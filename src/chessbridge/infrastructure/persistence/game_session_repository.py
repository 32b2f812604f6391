from __future__ import annotations

from threading import Lock
from typing import Dict, List
from uuid import UUID

from chessbridge.domain.games import GameSession


class InMemoryGameSessionRepository:
    """Process-local session store; sessions live as long as the process."""

    def __init__(self) -> None:
        self._sessions: Dict[UUID, GameSession] = {}
        self._lock = Lock()

    def create(self, session: GameSession) -> GameSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: UUID) -> GameSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def save(self, session: GameSession) -> GameSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def all(self) -> List[GameSession]:
        with self._lock:
            return list(self._sessions.values())


__all__ = ["InMemoryGameSessionRepository"]
