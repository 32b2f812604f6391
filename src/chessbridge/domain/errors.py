from __future__ import annotations


class ChessBridgeError(RuntimeError):
    """Base class for rules and engine-protocol errors."""

    code: str = "chessbridge_error"


class InvalidPositionError(ChessBridgeError):
    code = "invalid_position"


class IllegalMoveError(ChessBridgeError):
    code = "illegal_move"


class ProtocolStateError(ChessBridgeError):
    """Engine command received in a state that cannot accept it."""

    code = "protocol_state"


__all__ = [
    "ChessBridgeError",
    "IllegalMoveError",
    "InvalidPositionError",
    "ProtocolStateError",
]
