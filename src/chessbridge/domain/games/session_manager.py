from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Protocol
from uuid import UUID, uuid4

import structlog

from chessbridge.domain.ai.coordinator import AICoordinator
from chessbridge.domain.chess.rules_state import (
    MoveInput,
    MovePrediction,
    MoveRecord,
    STARTING_FEN,
    TerminalStatus,
)
from chessbridge.domain.errors import IllegalMoveError, InvalidPositionError

logger = structlog.get_logger("chessbridge.sessions")


class SessionStatus(str, Enum):
    in_progress = "in_progress"
    white_won = "white_won"
    black_won = "black_won"
    drawn = "drawn"
    aborted = "aborted"


class PlayerColor(str, Enum):
    white = "white"
    black = "black"


class MoveActor(str, Enum):
    human = "human"
    ai = "ai"


@dataclass(frozen=True)
class PlayedMove:
    record: MoveRecord
    actor: MoveActor
    timestamp: datetime
    substituted: bool = False


@dataclass
class GameSession:
    id: UUID
    status: SessionStatus
    player_color: PlayerColor
    search_depth: int
    initial_fen: str
    current_fen: str
    coordinator: AICoordinator = field(repr=False, compare=False)
    terminal_status: TerminalStatus = TerminalStatus.ongoing
    moves: List[PlayedMove] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: datetime | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)


class GameSessionRepository(Protocol):
    """Storage contract for live game sessions."""

    def create(self, session: GameSession) -> GameSession:
        ...

    def get(self, session_id: UUID) -> GameSession | None:
        ...

    def save(self, session: GameSession) -> GameSession:
        ...

    def all(self) -> Iterable[GameSession]:
        ...


CoordinatorFactory = Callable[[], AICoordinator]


class SessionError(RuntimeError):
    """Base class for session-related domain errors."""

    code: str = "session_error"


class SessionNotFoundError(SessionError):
    code = "session_not_found"


class SessionCompletedError(SessionError):
    code = "session_completed"


class EngineUnavailableError(SessionError):
    code = "engine_unavailable"


class SessionManager:
    """Run one coordinator per game and alternate human and AI moves."""

    def __init__(
        self,
        repository: GameSessionRepository,
        coordinator_factory: CoordinatorFactory,
        *,
        default_search_depth: int = 15,
        ready_timeout: float = 2.0,
        move_timeout: float = 5.0,
    ) -> None:
        self._repository = repository
        self._coordinator_factory = coordinator_factory
        self._default_search_depth = default_search_depth
        self._ready_timeout = ready_timeout
        self._move_timeout = move_timeout

    def create_session(
        self,
        *,
        player_color: PlayerColor,
        search_depth: int | None = None,
        initial_fen: str | None = None,
    ) -> GameSession:
        coordinator = self._coordinator_factory()
        depth = self._default_search_depth if search_depth is None else search_depth
        try:
            coordinator.set_search_depth(depth)
            if initial_fen and not coordinator.set_position(initial_fen):
                raise InvalidPositionError(f"Invalid FEN: {initial_fen}")
            self._await_ready(coordinator)
        except Exception:
            coordinator.terminate()
            raise

        session = GameSession(
            id=uuid4(),
            status=SessionStatus.in_progress,
            player_color=player_color,
            search_depth=depth,
            initial_fen=coordinator.current_fen,
            current_fen=coordinator.current_fen,
            coordinator=coordinator,
        )
        with session.lock:
            self._sync_from_coordinator(session)
            if session.status is SessionStatus.in_progress and not self._is_human_turn(session):
                self._perform_ai_move(session)
        return self._repository.create(session)

    def get_session(self, session_id: UUID) -> GameSession:
        session = self._repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found.")
        return session

    def list_sessions(self) -> List[GameSession]:
        return list(self._repository.all())

    def submit_move(self, session_id: UUID, move: MoveInput) -> GameSession:
        session = self.get_session(session_id)
        with session.lock:
            if session.status is not SessionStatus.in_progress:
                raise SessionCompletedError(f"Session {session_id} already completed.")
            if not self._is_human_turn(session):
                raise IllegalMoveError("It is not the human player's turn.")

            record = session.coordinator.apply_move(move)
            if record is None:
                raise IllegalMoveError(f"Move {move} is not legal in the current position.")

            now = datetime.now(timezone.utc)
            session.moves.append(PlayedMove(record=record, actor=MoveActor.human, timestamp=now))
            session.updated_at = now
            self._sync_from_coordinator(session)

            if session.status is SessionStatus.in_progress:
                self._perform_ai_move(session)

            return self._repository.save(session)

    def legal_moves(self, session_id: UUID, square: str | None = None) -> List[str]:
        session = self.get_session(session_id)
        return session.coordinator.legal_moves(square)

    def predicted_moves(self, session_id: UUID) -> List[MovePrediction]:
        session = self.get_session(session_id)
        if session.status is not SessionStatus.in_progress:
            return []
        return session.coordinator.predicted_moves()

    def reset(self, session_id: UUID) -> GameSession:
        session = self.get_session(session_id)
        with session.lock:
            if session.status is SessionStatus.aborted:
                raise SessionCompletedError(f"Session {session_id} was closed.")
            session.coordinator.reset()
            session.moves = []
            session.initial_fen = STARTING_FEN
            session.ended_at = None
            session.updated_at = datetime.now(timezone.utc)
            self._sync_from_coordinator(session)
            if not self._is_human_turn(session):
                self._perform_ai_move(session)
            return self._repository.save(session)

    def close_session(self, session_id: UUID) -> GameSession:
        session = self.get_session(session_id)
        with session.lock:
            session.coordinator.terminate()
            now = datetime.now(timezone.utc)
            if session.status is SessionStatus.in_progress:
                session.status = SessionStatus.aborted
            session.ended_at = session.ended_at or now
            session.updated_at = now
            return self._repository.save(session)

    def _await_ready(self, coordinator: AICoordinator) -> None:
        ready = threading.Event()
        coordinator.on_ready(ready.set)
        coordinator.initialize()
        if not ready.wait(self._ready_timeout):
            raise EngineUnavailableError("Engine did not complete the handshake in time.")

    def _perform_ai_move(self, session: GameSession) -> None:
        coordinator = session.coordinator
        if coordinator.is_game_over:
            self._sync_from_coordinator(session)
            return

        answered = threading.Event()
        answer: dict[str, str | None] = {}

        def _deliver(move: str | None) -> None:
            answer["move"] = move
            answered.set()

        substitutions_before = coordinator.substitutions
        if not coordinator.request_best_move(_deliver):
            raise EngineUnavailableError("Engine is busy or not ready.")
        if not answered.wait(self._move_timeout):
            raise EngineUnavailableError("Engine did not answer in time.")

        move = answer.get("move")
        if move is None:
            self._sync_from_coordinator(session)
            return

        record = coordinator.apply_move(move)
        if record is None:
            raise EngineUnavailableError(f"Engine answer {move} could not be applied.")

        now = datetime.now(timezone.utc)
        substituted = coordinator.substitutions > substitutions_before
        session.moves.append(
            PlayedMove(record=record, actor=MoveActor.ai, timestamp=now, substituted=substituted)
        )
        session.updated_at = now
        self._sync_from_coordinator(session)
        logger.info(
            "ai_move_played",
            session_id=str(session.id),
            move=record.uci,
            san=record.san,
            substituted=substituted,
        )

    def _sync_from_coordinator(self, session: GameSession) -> None:
        coordinator = session.coordinator
        session.current_fen = coordinator.current_fen
        session.terminal_status = coordinator.terminal_status()
        if session.status is SessionStatus.aborted:
            return

        if session.terminal_status is TerminalStatus.ongoing:
            session.status = SessionStatus.in_progress
            session.ended_at = None
            return

        if session.terminal_status is TerminalStatus.checkmate:
            # The side to move is the side that was mated.
            session.status = (
                SessionStatus.black_won if coordinator.turn == "w" else SessionStatus.white_won
            )
        else:
            session.status = SessionStatus.drawn
        session.ended_at = session.ended_at or datetime.now(timezone.utc)

    def _is_human_turn(self, session: GameSession) -> bool:
        human = "w" if session.player_color is PlayerColor.white else "b"
        return session.coordinator.turn == human


__all__ = [
    "CoordinatorFactory",
    "EngineUnavailableError",
    "GameSession",
    "GameSessionRepository",
    "MoveActor",
    "PlayedMove",
    "PlayerColor",
    "SessionCompletedError",
    "SessionError",
    "SessionManager",
    "SessionNotFoundError",
    "SessionStatus",
]
