from __future__ import annotations

import random
from typing import Callable, Optional

from chessbridge.domain.ai import AICoordinator
from chessbridge.domain.chess import RulesState
from chessbridge.domain.engine import BookTable, DEFAULT_BOOK, ProtocolBridge, Scheduler
from chessbridge.infrastructure.config import AppConfig, load_config


def _rng(seed: int | None) -> random.Random:
    return random.Random(seed) if seed is not None else random.Random()


def build_bridge(
    config: Optional[AppConfig] = None,
    *,
    scheduler: Scheduler | None = None,
    book: BookTable = DEFAULT_BOOK,
) -> ProtocolBridge:
    """Create a protocol bridge wired with configured identity and seed."""
    cfg = config or load_config()
    return ProtocolBridge(
        scheduler=scheduler,
        book=book,
        rng=_rng(cfg.engine_seed),
        engine_name=cfg.engine_name,
        engine_author=cfg.engine_author,
    )


def build_coordinator(
    config: Optional[AppConfig] = None,
    *,
    scheduler: Scheduler | None = None,
    book: BookTable = DEFAULT_BOOK,
) -> AICoordinator:
    """Create a coordinator with its own rules state and bridge."""
    cfg = config or load_config()
    return AICoordinator(
        rules=RulesState(rng=_rng(cfg.engine_seed)),
        bridge=build_bridge(cfg, scheduler=scheduler, book=book),
        search_depth=cfg.search_depth,
    )


def coordinator_factory(
    config: Optional[AppConfig] = None,
    *,
    scheduler: Scheduler | None = None,
) -> Callable[[], AICoordinator]:
    cfg = config or load_config()
    return lambda: build_coordinator(cfg, scheduler=scheduler)


__all__ = ["build_bridge", "build_coordinator", "coordinator_factory"]
