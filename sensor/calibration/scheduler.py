# sensor/calibration/scheduler.py

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Where timers and background work run. Swapped for a manual clock in tests."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        ...

    def spawn(self, fn: Callable[[], None], name: str = "") -> None:
        ...


class ThreadScheduler:
    """
    Production scheduler.
    - call_later -> daemon threading.Timer (cancel() releases it)
    - spawn      -> daemon worker thread for blocking device calls
    """

    def call_later(self, delay: float, fn: Callable[[], None]) -> threading.Timer:
        t = threading.Timer(max(0.0, delay), fn)
        t.daemon = True
        t.start()
        return t

    def spawn(self, fn: Callable[[], None], name: str = "") -> None:
        th = threading.Thread(target=fn, name=name or None, daemon=True)
        th.start()
