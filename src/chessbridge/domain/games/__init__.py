from .session_manager import (
    CoordinatorFactory,
    EngineUnavailableError,
    GameSession,
    GameSessionRepository,
    MoveActor,
    PlayedMove,
    PlayerColor,
    SessionCompletedError,
    SessionError,
    SessionManager,
    SessionNotFoundError,
    SessionStatus,
)

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
