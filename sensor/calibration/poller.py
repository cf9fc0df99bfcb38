# sensor/calibration/poller.py

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, Optional, Set, Tuple

from sensor.client import CancelToken
from sensor.calibration.errors import CalibrationCancelled, TransportError
from sensor.calibration.scheduler import Scheduler, TimerHandle
from system.log_utils import debug, verbose, warn

DEFAULT_INTERVAL_SEC = 0.5
DEFAULT_MAX_ERRORS = 5

CheckReady = Callable[[CancelToken], bool]


class CompletionPoller:
    """
    Repeatedly asks the device whether calibration finished.

    start() returns (future, cancel):
    - one recurring timer is alive until the future settles or cancel() runs
    - each tick issues one check on a worker; checks may overlap
    - the first True resolves the future exactly once
    - transport errors are treated as transient; `max_errors` consecutive
      failures fail the future with the last error
    """

    def __init__(self, scheduler: Scheduler, interval: float = DEFAULT_INTERVAL_SEC,
                 max_errors: int = DEFAULT_MAX_ERRORS):
        self.scheduler = scheduler
        self.interval = interval
        self.max_errors = max(1, max_errors)

        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self._timer: Optional[TimerHandle] = None
        self._tokens: Set[CancelToken] = set()
        self._check: Optional[CheckReady] = None
        self._stopped = True
        self._consecutive_errors = 0
        self.ticks = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self, check_ready: CheckReady) -> Tuple[Future, Callable[[], None]]:
        with self._lock:
            if not self._stopped:
                raise RuntimeError("poller already started")
            self._check = check_ready
            self._future = Future()
            self._stopped = False
            self._consecutive_errors = 0
            self._arm()

        debug(f"[POLLER] started, interval={self.interval}s")
        return self._future, self.cancel

    def cancel(self) -> None:
        with self._lock:
            if self._stopped:
                return
            future = self._future
            self._release()

        debug("[POLLER] cancelled")
        if future is not None:
            future.cancel()

    @property
    def active(self) -> bool:
        return not self._stopped

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _arm(self) -> None:
        self._timer = self.scheduler.call_later(self.interval, self._tick)

    def _release(self) -> None:
        # caller holds the lock
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        tokens, self._tokens = self._tokens, set()
        for token in tokens:
            token.cancel("poller stopped")

    def _tick(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self.ticks += 1
            token = CancelToken(f"isready#{self.ticks}")
            self._tokens.add(token)
            future = self._future
            self._arm()

        self.scheduler.spawn(lambda: self._run_check(future, token), name="ready-check")

    def _run_check(self, future: Future, token: CancelToken) -> None:
        try:
            ready = self._check(token)
        except CalibrationCancelled:
            return
        except TransportError as e:
            self._on_error(future, token, e)
            return
        finally:
            with self._lock:
                self._tokens.discard(token)

        verbose(f"[POLLER] {token.label} -> {ready}")
        if not ready:
            with self._lock:
                if future is self._future and not self._stopped:
                    self._consecutive_errors = 0
            return

        with self._lock:
            # a late answer from a cancelled or already settled poll is dropped
            if future is not self._future or self._stopped or token.cancelled:
                return
            self._release()

        debug("[POLLER] device reports ready")
        future.set_result(True)

    def _on_error(self, future: Future, token: CancelToken, exc: TransportError) -> None:
        with self._lock:
            if future is not self._future or self._stopped or token.cancelled:
                return
            self._consecutive_errors += 1
            count = self._consecutive_errors
            if count < self.max_errors:
                warn(f"[POLLER] readiness check failed ({count}/{self.max_errors}): {exc}")
                return
            self._release()

        warn(f"[POLLER] giving up after {count} consecutive errors: {exc}")
        future.set_exception(exc)
