from __future__ import annotations

import re
from threading import RLock
from typing import Callable, List, Optional, Sequence

import structlog

from chessbridge.domain.chess.rules_state import (
    MoveInput,
    MovePrediction,
    MoveRecord,
    RulesState,
    TerminalStatus,
    parse_move,
)
from chessbridge.domain.engine.protocol_bridge import (
    DEFAULT_SEARCH_DEPTH,
    EngineMessage,
    EngineSession,
    ProtocolBridge,
)

logger = structlog.get_logger("chessbridge.ai")

BestMoveCallback = Callable[[Optional[str]], None]
ReadyCallback = Callable[[], None]

_BESTMOVE = re.compile(r"^bestmove(?:\s+(\S+))?")


class AICoordinator:
    """Pair the authoritative rules state with the simulated engine.

    The rules state decides what is legal; the engine only proposes. Every
    position change goes to the rules state first and is forwarded to the engine
    only once accepted, and every engine proposal is checked before it reaches a
    caller. Illegal or missing proposals are replaced by the rules state's
    heuristic move.

    The coordinator lock is never held while calling into the bridge: engine
    replies arrive on timer threads that already hold the bridge lock.
    """

    def __init__(
        self,
        *,
        rules: RulesState | None = None,
        bridge: ProtocolBridge | None = None,
        search_depth: int = DEFAULT_SEARCH_DEPTH,
    ) -> None:
        self._rules = rules or RulesState()
        self._bridge = bridge or ProtocolBridge()
        self._lock = RLock()
        self._search_depth = search_depth
        self._ready = False
        self._thinking = False
        self._terminated = False
        self._substitutions = 0
        self._ready_callback: ReadyCallback | None = None
        self._best_move_callback: BestMoveCallback | None = None
        self._bridge.on_message(self._handle_engine_message)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_thinking(self) -> bool:
        return self._thinking

    @property
    def search_depth(self) -> int:
        return self._search_depth

    @property
    def substitutions(self) -> int:
        """Number of engine proposals replaced by a heuristic move."""
        return self._substitutions

    @property
    def current_fen(self) -> str:
        with self._lock:
            return self._rules.current_fen

    @property
    def turn(self) -> str:
        with self._lock:
            return self._rules.turn

    @property
    def move_history(self) -> Sequence[MoveRecord]:
        with self._lock:
            return self._rules.move_history

    @property
    def is_game_over(self) -> bool:
        with self._lock:
            return self._rules.is_game_over

    @property
    def bridge(self) -> ProtocolBridge:
        return self._bridge

    @property
    def engine_session(self) -> EngineSession:
        return self._bridge.session

    def legal_moves(self, square: str | None = None) -> List[str]:
        with self._lock:
            return self._rules.legal_moves(square)

    def predicted_moves(self) -> List[MovePrediction]:
        with self._lock:
            return self._rules.predicted_moves()

    def terminal_status(self) -> TerminalStatus:
        with self._lock:
            return self._rules.terminal_status()

    def is_legal(self, move: MoveInput) -> bool:
        with self._lock:
            return self._rules.is_legal(move)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        if self._terminated:
            return
        self._bridge.post_message("uci")

    def on_ready(self, callback: ReadyCallback | None) -> None:
        with self._lock:
            self._ready_callback = callback
            fire_now = self._ready and callback is not None
        if fire_now:
            callback()

    def set_search_depth(self, depth: int) -> None:
        if depth < 0:
            raise ValueError("Search depth must be non-negative.")
        self._search_depth = depth

    def set_position(self, fen: str) -> bool:
        with self._lock:
            accepted = self._rules.set_position(fen)
            current = self._rules.current_fen
        if accepted:
            self._sync_engine(current)
        return accepted

    def apply_move(self, move: MoveInput) -> MoveRecord | None:
        with self._lock:
            record = self._rules.apply_move(move)
        if record is not None:
            self._sync_engine(record.fen_after)
        return record

    def request_best_move(self, callback: BestMoveCallback) -> bool:
        with self._lock:
            if self._terminated or not self._ready:
                logger.info("best_move_rejected", reason="engine_not_ready")
                return False
            if self._thinking:
                logger.info("best_move_rejected", reason="search_in_progress")
                return False
            self._thinking = True
            self._best_move_callback = callback
            depth = self._search_depth

        self._bridge.post_message(f"go depth {depth}")
        return True

    def reset(self) -> None:
        with self._lock:
            self._rules.reset()
            fen = self._rules.current_fen
            ready = self._ready and not self._terminated
        if ready:
            self._bridge.post_message("ucinewgame")
        self._sync_engine(fen)

    def terminate(self) -> None:
        with self._lock:
            self._terminated = True
            self._ready = False
            self._thinking = False
            self._ready_callback = None
            self._best_move_callback = None
        self._bridge.terminate()

    # ------------------------------------------------------------------
    # Engine replies
    # ------------------------------------------------------------------

    def _handle_engine_message(self, message: EngineMessage) -> None:
        data = message.data.strip()
        if data == "uciok":
            if not self._ready:
                self._bridge.post_message("isready")
        elif data == "readyok":
            self._mark_ready()
        elif data.startswith("bestmove"):
            self._resolve_best_move(data)
        else:
            logger.debug("engine_info", line=data)

    def _mark_ready(self) -> None:
        with self._lock:
            if self._ready or self._terminated:
                return
            self._ready = True
            fen = self._rules.current_fen
            callback = self._ready_callback
        self._sync_engine(fen)
        logger.info("engine_ready", fen=fen)
        if callback is not None:
            callback()

    def _resolve_best_move(self, line: str) -> None:
        match = _BESTMOVE.match(line)
        proposal = match.group(1) if match else None

        with self._lock:
            if not self._thinking:
                logger.debug("unsolicited_best_move", line=line)
                return
            self._thinking = False
            callback = self._best_move_callback
            self._best_move_callback = None

            parsed = parse_move(proposal) if proposal else None
            if parsed is not None and self._rules.is_legal(parsed):
                move: str | None = parsed.uci()
            else:
                move = self._rules.heuristic_best_move()
                self._substitutions += 1
                logger.warning(
                    "engine_move_substituted",
                    proposal=proposal,
                    substitute=move,
                    fen=self._rules.current_fen,
                )

        if callback is not None:
            callback(move)

    def _sync_engine(self, fen: str) -> None:
        if self._ready and not self._terminated:
            self._bridge.post_message(f"position fen {fen}")


__all__ = ["AICoordinator", "BestMoveCallback", "ReadyCallback"]
