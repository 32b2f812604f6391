from .rules_state import (
    MoveInput,
    MovePrediction,
    MoveQuality,
    MoveRecord,
    MoveSpec,
    RulesState,
    STARTING_FEN,
    TerminalStatus,
    parse_move,
)

__all__ = [
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
