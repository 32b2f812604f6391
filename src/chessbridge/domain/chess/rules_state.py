from __future__ import annotations

import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Sequence, Union

import chess
import structlog

from chessbridge.domain.errors import IllegalMoveError, InvalidPositionError

logger = structlog.get_logger("chessbridge.rules")

STARTING_FEN = chess.STARTING_FEN
COORDINATE_MOVE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")
FEN_FIELD_COUNT = 6
PREDICTION_LIMIT = 5


class TerminalStatus(str, Enum):
    ongoing = "ongoing"
    checkmate = "checkmate"
    stalemate = "stalemate"
    insufficient_material = "insufficient_material"
    threefold_repetition = "threefold_repetition"
    fifty_move_rule = "fifty_move_rule"


@dataclass(frozen=True)
class MoveSpec:
    """Structured move: origin square, destination square, optional promotion piece."""

    source: str
    target: str
    promotion: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "MoveSpec":
        return cls(
            source=str(payload.get("from", "")),
            target=str(payload.get("to", "")),
            promotion=payload.get("promotion") or None,
        )

    @property
    def uci(self) -> str:
        return f"{self.source}{self.target}{self.promotion or ''}".lower()


MoveInput = Union[str, MoveSpec, Mapping[str, Any], chess.Move]


class MoveQuality(str, Enum):
    good = "Good"
    normal = "Normal"
    poor = "Poor"


@dataclass(frozen=True)
class MovePrediction:
    uci: str
    san: str
    quality: MoveQuality


@dataclass(frozen=True)
class MoveRecord:
    san: str
    uci: str
    color: str
    from_square: str
    to_square: str
    piece: str
    captured: str | None
    is_check: bool
    promotion: str | None
    fen_before: str
    fen_after: str

    @property
    def is_capture(self) -> bool:
        return self.captured is not None

    @property
    def is_promotion(self) -> bool:
        return self.promotion is not None


def _is_listed(board: chess.Board, move: chess.Move) -> bool:
    # python-chess also accepts king-takes-rook castling; only listed forms count.
    return any(candidate == move for candidate in board.legal_moves)


def parse_move(move: MoveInput) -> chess.Move | None:
    """Convert any accepted move representation into a python-chess move, or None."""
    if isinstance(move, chess.Move):
        return move
    if isinstance(move, MoveSpec):
        text = move.uci
    elif isinstance(move, Mapping):
        text = MoveSpec.from_mapping(move).uci
    elif isinstance(move, str):
        text = move.strip().lower()
    else:
        return None

    if not COORDINATE_MOVE.match(text):
        return None
    try:
        return chess.Move.from_uci(text)
    except ValueError:
        return None


class RulesState:
    """Authoritative chess position with legality checks and move history."""

    def __init__(self, fen: str | None = None, *, rng: random.Random | None = None) -> None:
        self._board = chess.Board()
        self._history: List[MoveRecord] = []
        self._rng = rng or random.Random()
        if fen is not None:
            self.load_position(fen)

    @property
    def current_fen(self) -> str:
        return self._board.fen(en_passant="fen")

    @property
    def turn(self) -> str:
        return "w" if self._board.turn == chess.WHITE else "b"

    @property
    def move_history(self) -> Sequence[MoveRecord]:
        return tuple(self._history)

    @property
    def is_game_over(self) -> bool:
        return self.terminal_status() is not TerminalStatus.ongoing

    def load_position(self, fen: str) -> None:
        if not isinstance(fen, str) or not fen.strip():
            raise InvalidPositionError("FEN must be a non-empty string.")
        if len(fen.split()) != FEN_FIELD_COUNT:
            raise InvalidPositionError(f"FEN {fen!r} must have {FEN_FIELD_COUNT} fields.")
        try:
            board = chess.Board(fen.strip())
        except ValueError as exc:
            raise InvalidPositionError(f"Malformed FEN {fen!r}: {exc}") from exc

        status = board.status()
        if status != chess.STATUS_VALID:
            raise InvalidPositionError(f"Unreachable position {fen!r} (status {int(status)}).")
        self._board = board

    def set_position(self, fen: str) -> bool:
        try:
            self.load_position(fen)
        except InvalidPositionError as exc:
            logger.warning("invalid_position_rejected", fen=fen, detail=str(exc))
            return False
        return True

    def reset(self) -> None:
        self._board = chess.Board()
        self._history = []

    def push(self, move: MoveInput) -> MoveRecord:
        parsed = parse_move(move)
        if parsed is None or not _is_listed(self._board, parsed):
            raise IllegalMoveError(f"Move {move!r} is not legal in {self.current_fen}.")

        board = self._board
        fen_before = self.current_fen
        moving_piece = board.piece_at(parsed.from_square)
        if board.is_en_passant(parsed):
            captured_piece: chess.Piece | None = chess.Piece(chess.PAWN, not board.turn)
        else:
            captured_piece = board.piece_at(parsed.to_square)
        color = self.turn
        san = board.san(parsed)
        board.push(parsed)

        record = MoveRecord(
            san=san,
            uci=board.peek().uci(),
            color=color,
            from_square=chess.square_name(parsed.from_square),
            to_square=chess.square_name(parsed.to_square),
            piece=moving_piece.symbol().lower() if moving_piece else "",
            captured=captured_piece.symbol().lower() if captured_piece else None,
            is_check=board.is_check(),
            promotion=chess.piece_symbol(parsed.promotion) if parsed.promotion else None,
            fen_before=fen_before,
            fen_after=self.current_fen,
        )
        self._history.append(record)
        return record

    def apply_move(self, move: MoveInput) -> MoveRecord | None:
        try:
            return self.push(move)
        except IllegalMoveError as exc:
            logger.info("illegal_move_rejected", move=str(move), detail=str(exc))
            return None

    def is_legal(self, move: MoveInput) -> bool:
        parsed = parse_move(move)
        if parsed is None:
            return False
        trial = self._board.copy(stack=False)
        if not _is_listed(trial, parsed):
            return False
        trial.push(parsed)
        return True

    def legal_moves(self, square: str | None = None) -> List[str]:
        moves = self._board.legal_moves
        if square is None:
            return [move.uci() for move in moves]
        try:
            origin = chess.parse_square(square.strip().lower())
        except (AttributeError, ValueError):
            return []
        return [move.uci() for move in moves if move.from_square == origin]

    def terminal_status(self) -> TerminalStatus:
        board = self._board
        if board.is_checkmate():
            return TerminalStatus.checkmate
        if board.is_stalemate():
            return TerminalStatus.stalemate
        if board.is_insufficient_material():
            return TerminalStatus.insufficient_material
        if board.is_repetition(3):
            return TerminalStatus.threefold_repetition
        if board.is_fifty_moves():
            return TerminalStatus.fifty_move_rule
        return TerminalStatus.ongoing

    def heuristic_best_move(self) -> str | None:
        """Promotions first, then captures, then checks, else any legal move."""
        board = self._board
        moves = list(board.legal_moves)
        if not moves:
            return None

        promotions = [move for move in moves if move.promotion is not None]
        captures = [move for move in moves if board.is_capture(move)]
        checks = [move for move in moves if board.gives_check(move)]
        for pool in (promotions, captures, checks, moves):
            if pool:
                return self._rng.choice(pool).uci()
        return None

    def predicted_moves(self, limit: int = PREDICTION_LIMIT) -> List[MovePrediction]:
        """Rate the first few legal moves.

        Captures, checks and promotions are rated good. Other moves are normal,
        with roughly three in ten marked poor at random.
        """
        board = self._board
        predictions: List[MovePrediction] = []
        for move in list(board.legal_moves)[: max(limit, 0)]:
            if board.is_capture(move) or board.gives_check(move) or move.promotion is not None:
                quality = MoveQuality.good
            elif self._rng.random() > 0.7:
                quality = MoveQuality.poor
            else:
                quality = MoveQuality.normal
            predictions.append(MovePrediction(uci=move.uci(), san=board.san(move), quality=quality))
        return predictions


__all__ = [
    "COORDINATE_MOVE",
    "MoveInput",
    "MovePrediction",
    "MoveQuality",
    "MoveRecord",
    "MoveSpec",
    "RulesState",
    "STARTING_FEN",
    "TerminalStatus",
    "parse_move",
]
