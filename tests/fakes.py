"""Test doubles: a manual clock scheduler and an in-memory device client."""

from collections import deque
from typing import Callable, List

from sensor.calibration.errors import TransportError


class ManualTimer:
    def __init__(self, due: float, fn: Callable[[], None]):
        self.due = due
        self.fn = fn
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def live(self) -> bool:
        return not (self.cancelled or self.fired)


class ManualScheduler:
    """
    Deterministic scheduler. Time only moves in advance(); spawned work
    queues up until run_jobs() so tests decide when responses arrive.
    """

    def __init__(self):
        self.now = 0.0
        self.timers: List[ManualTimer] = []
        self.jobs = deque()

    def call_later(self, delay, fn):
        t = ManualTimer(self.now + delay, fn)
        self.timers.append(t)
        return t

    def spawn(self, fn, name=""):
        self.jobs.append(fn)

    @property
    def live_timers(self) -> List[ManualTimer]:
        return [t for t in self.timers if t.live]

    def run_jobs(self) -> int:
        ran = 0
        while self.jobs:
            self.jobs.popleft()()
            ran += 1
        return ran

    def advance(self, seconds: float, run_jobs: bool = True) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.live_timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            timer.fired = True
            timer.fn()
            if run_jobs:
                self.run_jobs()
        self.now = target
        if run_jobs:
            self.run_jobs()


class FakeDeviceClient:
    """Records calls in order. Honors cancel tokens like the real client."""

    def __init__(self, elevation: int = 500):
        self.base_url = "http://device.test"
        self.calls = []
        self.elevation = elevation
        self.co2 = 415
        self.ready_results = []
        self.read_error = None
        self.write_error = None
        self.start_error = None
        self.co2_error = None

    def _call(self, name, token, *args):
        if token is not None:
            token.raise_if_cancelled()
        self.calls.append((name,) + args)

    @property
    def names(self):
        return [c[0] for c in self.calls]

    def read_elevation(self, token=None):
        self._call("read_elevation", token)
        if self.read_error:
            raise self.read_error
        return self.elevation

    def write_elevation(self, value, token=None):
        self._call("write_elevation", token, value)
        if self.write_error:
            raise self.write_error

    def start_calibration(self, token=None):
        self._call("start_calibration", token)
        if self.start_error:
            raise self.start_error

    def check_ready(self, token=None):
        self._call("check_ready", token)
        result = self.ready_results.pop(0) if self.ready_results else False
        if isinstance(result, Exception):
            raise result
        return result

    def read_co2(self, token=None):
        self._call("read_co2", token)
        if self.co2_error:
            raise self.co2_error
        return self.co2


def transport_error(msg: str = "connection refused", status=None) -> TransportError:
    return TransportError(msg, status)
