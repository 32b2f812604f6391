"""
Simulated UCI engine.

The bridge behaves like an engine process reached over a text pipe: commands
go in through ``post_message`` and every reply comes back later, from a timer,
through the single registered message handler. It never searches. A ``go``
command sleeps for a depth-derived "thinking" time and answers with an opening
book move for the stored position, or a random move from the fallback list for
the side to move. It holds no legality checker, so its answers can be illegal;
callers are expected to validate them.

State machine::

    UNINITIALIZED --uci--> AWAITING_HANDSHAKE --(uciok, isready/readyok)--> READY
    READY --go--> SEARCHING --bestmove--> READY
    any --quit/terminate--> TERMINATED

Commands arriving in a state that cannot take them are dropped and logged.
Handlers run while the bridge lock is held, so once ``terminate()`` returns
nothing else is delivered.
"""

from __future__ import annotations

import dataclasses
import random
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Set

import chess
import structlog

from chessbridge.domain.engine.book import DEFAULT_BOOK, BookTable
from chessbridge.domain.engine.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from chessbridge.domain.errors import ProtocolStateError

logger = structlog.get_logger("chessbridge.engine")

HANDSHAKE_DELAY_MS = 100
DEFAULT_SEARCH_DEPTH = 15
BASE_THINK_MS = 300
THINK_MS_PER_DEPTH = 100
MAX_THINK_MS = 3000

DEFAULT_ENGINE_NAME = "ChessBridge Local"
DEFAULT_ENGINE_AUTHOR = "The ChessBridge Team"

_DEPTH_PATTERN = re.compile(r"\bdepth\s+(\d+)")


class EngineState(str, Enum):
    uninitialized = "uninitialized"
    awaiting_handshake = "awaiting_handshake"
    ready = "ready"
    searching = "searching"
    terminated = "terminated"


@dataclass
class EngineSession:
    state: EngineState = EngineState.uninitialized
    current_position: str = ""
    search_depth: int = DEFAULT_SEARCH_DEPTH
    identified: bool = False

    @property
    def is_initialized(self) -> bool:
        return self.identified and self.state is not EngineState.terminated

    @property
    def is_ready_for_search(self) -> bool:
        return self.state is EngineState.ready

    @property
    def is_searching(self) -> bool:
        return self.state is EngineState.searching


@dataclass(frozen=True)
class EngineMessage:
    """Envelope around one protocol line, mirroring a worker ``message`` event."""

    data: str


MessageHandler = Callable[[EngineMessage], None]


def thinking_time_ms(depth: int) -> int:
    return min(BASE_THINK_MS + depth * THINK_MS_PER_DEPTH, MAX_THINK_MS)


def parse_depth(arguments: str) -> int | None:
    match = _DEPTH_PATTERN.search(arguments)
    if match is None:
        return None
    return int(match.group(1))


class ProtocolBridge:
    """Single-session, asynchronous command/response engine stand-in."""

    def __init__(
        self,
        *,
        scheduler: Scheduler | None = None,
        book: BookTable = DEFAULT_BOOK,
        rng: random.Random | None = None,
        engine_name: str = DEFAULT_ENGINE_NAME,
        engine_author: str = DEFAULT_ENGINE_AUTHOR,
    ) -> None:
        self._scheduler = scheduler or ThreadingScheduler()
        self._book = book
        self._rng = rng or random.Random()
        self._engine_name = engine_name
        self._engine_author = engine_author
        self._lock = threading.RLock()
        self._session = EngineSession()
        self._handler: Optional[MessageHandler] = None
        self._armed: Set[int] = set()
        self._handles: Dict[int, TimerHandle] = {}
        self._next_token = 0
        self._search_token: int | None = None
        self._search_position = ""

    @property
    def session(self) -> EngineSession:
        with self._lock:
            return dataclasses.replace(self._session)

    @property
    def state(self) -> EngineState:
        return self._session.state

    @property
    def has_pending_replies(self) -> bool:
        with self._lock:
            return bool(self._armed)

    def on_message(self, handler: MessageHandler | None) -> None:
        with self._lock:
            self._handler = handler

    def post_message(self, message: str) -> None:
        """Dispatch one protocol command line."""
        command = message.strip()
        if not command:
            return
        keyword, _, arguments = command.partition(" ")
        arguments = arguments.strip()

        if keyword == "uci":
            self.handshake()
        elif keyword == "isready":
            self.ready_check()
        elif keyword == "ucinewgame":
            self.new_game()
        elif keyword == "position":
            self._handle_position(arguments)
        elif keyword == "go":
            self.search(depth=parse_depth(arguments))
        elif keyword == "stop":
            self.stop()
        elif keyword == "quit":
            self.terminate()
        else:
            logger.debug("unknown_command_ignored", command=command)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def handshake(self) -> bool:
        with self._lock:
            if not self._accepts(
                "uci",
                EngineState.uninitialized,
                EngineState.awaiting_handshake,
                EngineState.ready,
                EngineState.searching,
            ):
                return False
            if self._session.state is EngineState.uninitialized:
                self._session.state = EngineState.awaiting_handshake
            self._arm(HANDSHAKE_DELAY_MS, self._send_identity)
            return True

    def ready_check(self) -> bool:
        with self._lock:
            if not self._accepts(
                "isready",
                EngineState.uninitialized,
                EngineState.awaiting_handshake,
                EngineState.ready,
                EngineState.searching,
            ):
                return False
            self._arm(HANDSHAKE_DELAY_MS, self._acknowledge_ready)
            return True

    def new_game(self) -> bool:
        with self._lock:
            if not self._accepts("ucinewgame", EngineState.ready, EngineState.searching):
                return False
            self._session.current_position = chess.STARTING_FEN
            return True

    def set_position(self, position: str) -> bool:
        with self._lock:
            if not self._accepts("position", EngineState.ready, EngineState.searching):
                return False
            self._session.current_position = position
            return True

    def search(self, depth: int | None = None) -> bool:
        with self._lock:
            if not self._accepts("go", EngineState.ready):
                return False
            if not isinstance(depth, int) or depth < 0:
                depth = DEFAULT_SEARCH_DEPTH

            delay = thinking_time_ms(depth)
            self._session.state = EngineState.searching
            self._session.search_depth = depth
            self._search_position = self._session.current_position
            logger.debug("search_started", depth=depth, think_ms=delay)
            token = self._arm(delay, self._finish_search)
            if token in self._armed:
                self._search_token = token
            return True

    def stop(self) -> bool:
        """Answer an in-flight search immediately."""
        with self._lock:
            if self._session.state is not EngineState.searching:
                return False
            if self._search_token is not None:
                self._disarm(self._search_token)
            self._finish_search()
            return True

    def terminate(self) -> None:
        with self._lock:
            if self._session.state is EngineState.terminated:
                return
            self._session.state = EngineState.terminated
            for token in list(self._armed):
                self._disarm(token)
            self._search_token = None
            self._handler = None
            logger.debug("bridge_terminated")

    # ------------------------------------------------------------------
    # Timer-driven replies
    # ------------------------------------------------------------------

    def _send_identity(self) -> None:
        self._session.identified = True
        self._emit(f"id name {self._engine_name}")
        self._emit(f"id author {self._engine_author}")
        self._emit("uciok")

    def _acknowledge_ready(self) -> None:
        session = self._session
        if session.state is EngineState.awaiting_handshake and session.identified:
            session.state = EngineState.ready
        self._emit("readyok")

    def _finish_search(self) -> None:
        move = self._book.select_move(self._search_position, self._rng)
        self._search_token = None
        self._session.state = EngineState.ready
        self._emit(f"bestmove {move}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _handle_position(self, arguments: str) -> None:
        kind, _, rest = arguments.partition(" ")
        if kind == "fen" and rest.strip():
            self.set_position(rest.strip())
        elif kind == "startpos":
            if rest.strip():
                logger.debug("position_moves_ignored", moves=rest.strip())
            self.set_position(chess.STARTING_FEN)
        else:
            logger.warning("malformed_position_command", arguments=arguments)

    def _accepts(self, command: str, *allowed: EngineState) -> bool:
        try:
            self._require(command, *allowed)
        except ProtocolStateError as exc:
            logger.warning("command_ignored", command=command, reason=str(exc))
            return False
        return True

    def _require(self, command: str, *allowed: EngineState) -> None:
        state = self._session.state
        if state not in allowed:
            raise ProtocolStateError(f"'{command}' is not accepted while {state.value}.")

    def _arm(self, delay_ms: int, action: Callable[[], None]) -> int:
        token = self._next_token
        self._next_token += 1
        self._armed.add(token)

        def fire() -> None:
            with self._lock:
                if token not in self._armed:
                    return
                self._armed.discard(token)
                self._handles.pop(token, None)
                if self._session.state is EngineState.terminated:
                    return
                action()

        handle = self._scheduler.call_later(delay_ms, fire)
        if token in self._armed:
            self._handles[token] = handle
        return token

    def _disarm(self, token: int) -> None:
        self._armed.discard(token)
        handle = self._handles.pop(token, None)
        if handle is not None:
            handle.cancel()

    def _emit(self, data: str) -> None:
        if self._session.state is EngineState.terminated:
            return
        handler = self._handler
        if handler is not None:
            handler(EngineMessage(data=data))


__all__ = [
    "DEFAULT_SEARCH_DEPTH",
    "EngineMessage",
    "EngineSession",
    "EngineState",
    "HANDSHAKE_DELAY_MS",
    "MAX_THINK_MS",
    "MessageHandler",
    "ProtocolBridge",
    "parse_depth",
    "thinking_time_ms",
]
