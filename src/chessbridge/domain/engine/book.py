from __future__ import annotations

import random
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

OPENING_BOOK: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        # Starting position
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1": ("e2e4", "d2d4", "g1f3", "c2c4"),
        # 1. e4
        "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1": ("e7e5", "c7c5", "e7e6", "d7d5"),
        # 1. d4
        "rnbqkbnr/pppppppp/8/8/3P4/8/PPP1PPPP/RNBQKBNR b KQkq d3 0 1": ("d7d5", "g8f6", "c7c5", "e7e6"),
        # Sicilian Defence
        "rnbqkbnr/pp1ppppp/8/2p5/4P3/8/PPPP1PPP/RNBQKBNR w KQkq c6 0 2": ("g1f3", "c2c3", "b1c3", "d2d4"),
        # French Defence
        "rnbqkbnr/pppp1ppp/4p3/8/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2": ("d2d4", "b1c3", "g1f3", "e4e5"),
        # Queen's Gambit
        "rnbqkbnr/ppp1pppp/8/3p4/2PP4/8/PP2PPPP/RNBQKBNR b KQkq c3 0 2": ("e7e6", "c7c6", "g8f6", "d5c4"),
        # King's Indian Defence
        "rnbqkb1r/pppppp1p/5np1/8/3P4/8/PPP1PPPP/RNBQKBNR w KQkq - 0 2": ("c2c4", "g1f3", "b1c3", "e2e4"),
    }
)

FALLBACK_MOVES: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "w": (
            "e2e4", "d2d4", "g1f3", "b1c3", "c2c4", "f2f4", "e2e3", "d2d3",
            "a2a3", "h2h3", "a2a4", "h2h4", "b2b3", "g2g3",
        ),
        "b": (
            "e7e5", "d7d5", "g8f6", "b8c6", "c7c5", "e7e6", "d7d6", "c7c6",
            "a7a6", "h7h6", "a7a5", "h7h5", "b7b6", "g7g6",
        ),
    }
)

DEFAULT_MOVES: Mapping[str, str] = MappingProxyType({"w": "e2e4", "b": "e7e5"})


def side_to_move(position: str) -> str:
    """Second FEN field, or ``"w"`` when it is missing or not a colour."""
    fields = position.split()
    side = fields[1] if len(fields) > 1 else "w"
    return side if side in ("w", "b") else "w"


@dataclass(frozen=True)
class BookTable:
    """Read-only opening book plus per-side fallback lists."""

    entries: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: OPENING_BOOK)
    fallback: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: FALLBACK_MOVES)

    def candidates(self, position: str) -> Tuple[str, ...]:
        return tuple(self.entries.get(position, ()))

    def fallback_for(self, side: str) -> Tuple[str, ...]:
        return tuple(self.fallback.get(side, ()))

    def select_move(self, position: str, rng: random.Random) -> str:
        book_moves = self.candidates(position)
        if book_moves:
            return rng.choice(book_moves)

        side = side_to_move(position)
        fallback = self.fallback_for(side)
        if fallback:
            return rng.choice(fallback)
        return DEFAULT_MOVES[side]


DEFAULT_BOOK = BookTable()


__all__ = [
    "BookTable",
    "DEFAULT_BOOK",
    "DEFAULT_MOVES",
    "FALLBACK_MOVES",
    "OPENING_BOOK",
    "side_to_move",
]
