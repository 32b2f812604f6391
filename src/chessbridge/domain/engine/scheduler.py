from __future__ import annotations

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running if it has not started yet."""


class Scheduler(Protocol):
    """Arms one-shot callbacks after a delay expressed in milliseconds."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    """Runs each callback on a daemon ``threading.Timer``."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(delay_ms, 0) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer


__all__ = ["Scheduler", "ThreadingScheduler", "TimerHandle"]
