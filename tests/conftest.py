from __future__ import annotations

import random
from typing import Callable, List

import pytest

from chessbridge.domain.ai import AICoordinator
from chessbridge.domain.chess import RulesState
from chessbridge.domain.engine import DEFAULT_BOOK, BookTable, ProtocolBridge
from chessbridge.domain.games import SessionManager
from chessbridge.infrastructure.config import AppConfig
from chessbridge.infrastructure.engine import coordinator_factory
from chessbridge.infrastructure.persistence.game_session_repository import (
    InMemoryGameSessionRepository,
)
from chessbridge.interface.http.app import create_app


class ManualTimer:
    def __init__(self, due: int, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: timers fire only when the test advances time."""

    def __init__(self) -> None:
        self.now = 0
        self._timers: List[ManualTimer] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay_ms, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [timer for timer in self._timers if not timer.cancelled]

    def advance(self, milliseconds: int) -> None:
        target = self.now + milliseconds
        while True:
            due = [timer for timer in self.pending if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda item: item.due)
            self._timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target

    def run_all(self) -> None:
        while self.pending:
            self.advance(max(timer.due for timer in self.pending) - self.now)


class ImmediateTimer:
    def cancel(self) -> None:
        pass


class ImmediateScheduler:
    """Fires every callback synchronously, for blocking callers such as sessions."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ImmediateTimer:
        callback()
        return ImmediateTimer()


class RecordingBridge(ProtocolBridge):
    """Protocol bridge that remembers every command it was sent."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.commands: List[str] = []

    def post_message(self, message: str) -> None:
        self.commands.append(message)
        super().post_message(message)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def messages() -> List[str]:
    return []


@pytest.fixture
def bridge(scheduler: ManualScheduler, messages: List[str]) -> ProtocolBridge:
    engine = ProtocolBridge(scheduler=scheduler, rng=random.Random(7))
    engine.on_message(lambda message: messages.append(message.data))
    return engine


@pytest.fixture
def ready_bridge(bridge: ProtocolBridge, scheduler: ManualScheduler, messages: List[str]) -> ProtocolBridge:
    bridge.post_message("uci")
    scheduler.run_all()
    bridge.post_message("isready")
    scheduler.run_all()
    messages.clear()
    return bridge


@pytest.fixture
def make_coordinator(scheduler: ManualScheduler):
    """Build a coordinator on the virtual clock, optionally already handshaken."""

    def _make(
        *,
        book: BookTable = DEFAULT_BOOK,
        seed: int = 5,
        ready: bool = True,
    ) -> AICoordinator:
        engine = RecordingBridge(scheduler=scheduler, book=book, rng=random.Random(seed))
        coordinator = AICoordinator(rules=RulesState(rng=random.Random(seed + 1)), bridge=engine)
        if ready:
            coordinator.initialize()
            scheduler.run_all()
            assert coordinator.is_ready
        return coordinator

    return _make


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a configuration tuned for isolated tests."""
    return AppConfig(
        flask_env="test",
        search_depth=1,
        engine_seed=11,
        ready_timeout_seconds=2.0,
        move_timeout_seconds=5.0,
        additional={"STRUCTLOG_LEVEL": "WARNING"},
    )


@pytest.fixture
def app(app_config: AppConfig):
    flask_app = create_app(app_config, scheduler=ImmediateScheduler())
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session_manager(app_config: AppConfig) -> SessionManager:
    return SessionManager(
        InMemoryGameSessionRepository(),
        coordinator_factory(app_config, scheduler=ImmediateScheduler()),
        default_search_depth=app_config.search_depth,
        ready_timeout=app_config.ready_timeout_seconds,
        move_timeout=app_config.move_timeout_seconds,
    )
