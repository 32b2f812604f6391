from .book import BookTable, DEFAULT_BOOK, FALLBACK_MOVES, OPENING_BOOK
from .protocol_bridge import (
    DEFAULT_SEARCH_DEPTH,
    EngineMessage,
    EngineSession,
    EngineState,
    ProtocolBridge,
    thinking_time_ms,
)
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle

__all__ = [
    "BookTable",
    "DEFAULT_BOOK",
    "DEFAULT_SEARCH_DEPTH",
    "EngineMessage",
    "EngineSession",
    "EngineState",
    "FALLBACK_MOVES",
    "OPENING_BOOK",
    "ProtocolBridge",
    "Scheduler",
    "ThreadingScheduler",
    "TimerHandle",
    "thinking_time_ms",
]
