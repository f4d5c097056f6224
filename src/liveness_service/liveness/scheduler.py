"""Cancelable delayed callbacks used for challenge cooldowns."""

from __future__ import annotations

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """
    Runs callbacks on daemon timer threads.

    Callbacks fire off the caller's thread; whoever schedules them is
    responsible for taking its state lock inside the callback.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
