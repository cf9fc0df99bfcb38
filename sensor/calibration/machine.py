# sensor/calibration/machine.py
#
# Calibration workflow state machine.
#
# Notes:
# - The transition table is plain data; dispatch() is the only place that
#   mutates the session. Unlisted (phase, event) pairs are no-ops.
# - Background results carry the generation they were spawned in and/or the
#   CancelToken of their request; results that no longer match are dropped.
# - Entering a phase releases the handles the new phase does not use.

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from sensor.client import CancelToken, DeviceClient
from sensor.calibration.errors import CalibrationCancelled, TransportError, ValidationError
from sensor.calibration.events import Event
from sensor.calibration.phase import WorkflowPhase
from sensor.calibration.poller import DEFAULT_INTERVAL_SEC, DEFAULT_MAX_ERRORS, CompletionPoller
from sensor.calibration.scheduler import Scheduler, TimerHandle
from sensor.calibration.validator import validate
from system.log_utils import debug, error, info, verbose, warn

DEFAULT_CLOSE_AFTER_SEC = 1.5

P = WorkflowPhase


@dataclass(frozen=True)
class Transition:
    target: Optional[WorkflowPhase]   # None: stay in the current phase
    action: Optional[str] = None      # name of the side-effect method
    terminal: bool = False            # session accepts no events afterwards


TRANSITIONS: Dict[Tuple[WorkflowPhase, Event], Transition] = {
    (P.CLOSED, Event.OPEN):                         Transition(P.AWAITING_INPUT, "_clear_error"),
    (P.CLOSED, Event.LOAD):                         Transition(None, "_read_elevation"),
    (P.CLOSED, Event.ELEVATION_LOADED):             Transition(None, "_store_elevation"),

    (P.AWAITING_INPUT, Event.CLOSE):                Transition(P.CLOSED, "_cancel_pending"),
    (P.AWAITING_INPUT, Event.LOAD):                 Transition(None, "_read_elevation"),
    (P.AWAITING_INPUT, Event.ELEVATION_LOADED):     Transition(None, "_store_elevation"),
    (P.AWAITING_INPUT, Event.SUBMIT):               Transition(None, "_submit"),
    (P.AWAITING_INPUT, Event.SUBMIT_FAILED):        Transition(None, "_submit_failed"),
    (P.AWAITING_INPUT, Event.CALIBRATION_STARTED):  Transition(P.IN_PROGRESS, "_start_poller"),

    (P.IN_PROGRESS, Event.READY):                   Transition(P.SUCCEEDED, "_arm_close_timer"),
    (P.IN_PROGRESS, Event.POLL_FAILED):             Transition(P.AWAITING_INPUT, "_poll_failed"),

    (P.SUCCEEDED, Event.TIMER_FIRED):               Transition(P.CLOSED),
    (P.SUCCEEDED, Event.CLOSE):                     Transition(P.CLOSED),
}

for _phase in WorkflowPhase:
    TRANSITIONS[(_phase, Event.TEARDOWN)] = Transition(None, "_teardown", terminal=True)


@dataclass
class CalibrationSession:
    """State of one wizard instance. Owned by the state machine only."""
    phase: Optional[WorkflowPhase] = WorkflowPhase.CLOSED
    generation: int = 0
    revision: int = 0
    poll_handle: Optional[Tuple[Future, Callable[[], None]]] = None
    close_timer: Optional[TimerHandle] = None
    pending_requests: Set[CancelToken] = field(default_factory=set)
    submitting: bool = False
    elevation: Optional[int] = None
    elevation_chosen: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None
    torn_down: bool = False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value if self.phase else None,
            "generation": self.generation,
            "revision": self.revision,
            "submitting": self.submitting,
            "elevation": self.elevation,
            "error": self.error,
            "error_kind": self.error_kind,
            "polling": self.poll_handle is not None,
            "close_timer": self.close_timer is not None,
            "pending_requests": len(self.pending_requests),
            "torn_down": self.torn_down,
        }


class CalibrationStateMachine:
    def __init__(self, client: DeviceClient, scheduler: Scheduler,
                 poll_interval: float = DEFAULT_INTERVAL_SEC,
                 close_after: float = DEFAULT_CLOSE_AFTER_SEC,
                 poll_error_limit: int = DEFAULT_MAX_ERRORS):
        self.client = client
        self.scheduler = scheduler
        self.poll_interval = poll_interval
        self.close_after = close_after
        self.poll_error_limit = poll_error_limit

        self.session = CalibrationSession()
        self._lock = threading.RLock()
        self._subs: List[Callable[[Dict[str, Any]], None]] = []

    def subscribe(self, cb: Callable[[Dict[str, Any]], None]) -> None:
        self._subs.append(cb)

    @property
    def phase(self) -> Optional[WorkflowPhase]:
        return self.session.phase

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self.session.snapshot()

    # -----------------------------
    # Public API
    # -----------------------------
    def open(self) -> tuple[bool, str]:
        return self.dispatch(Event.OPEN)

    def close(self) -> tuple[bool, str]:
        return self.dispatch(Event.CLOSE)

    def submit(self, raw) -> tuple[bool, str]:
        return self.dispatch(Event.SUBMIT, raw)

    def load(self) -> tuple[bool, str]:
        return self.dispatch(Event.LOAD)

    def teardown(self) -> tuple[bool, str]:
        return self.dispatch(Event.TEARDOWN)

    def dispatch(self, event: Event, payload: Any = None, *,
                 generation: Optional[int] = None,
                 token: Optional[CancelToken] = None) -> tuple[bool, str]:
        """
        Apply one event. Returns (applied, message).

        `generation` and `token` identify the background work that produced
        the event; when they no longer match the session the event is dropped.
        """
        with self._lock:
            s = self.session
            if s.torn_down:
                verbose(f"[CALIBRATION] {event.name} after teardown dropped")
                return False, "Session torn down"

            if token is not None:
                if token not in s.pending_requests:
                    debug(f"[CALIBRATION] stale {event.name} from {token.label} dropped")
                    return False, "Stale response"
                s.pending_requests.discard(token)

            if generation is not None and generation != s.generation:
                debug(f"[CALIBRATION] stale {event.name} (gen {generation} != {s.generation}) dropped")
                return False, "Stale response"

            transition = TRANSITIONS.get((s.phase, event))
            if transition is None:
                verbose(f"[CALIBRATION] {event.name} ignored in {s.phase.value}")
                return False, f"{event.name} not allowed in {s.phase.value}"

            if transition.target is not None:
                self._enter(transition.target)

            ok, msg = True, "ok"
            if transition.action:
                ok, msg = getattr(self, transition.action)(payload)

            if transition.terminal:
                s.torn_down = True

            s.revision += 1
            # emitted under the lock so subscribers see revisions in order
            self._emit(s.snapshot())

        return ok, msg

    # -----------------------------
    # Phase bookkeeping
    # -----------------------------
    def _enter(self, target: WorkflowPhase) -> None:
        s = self.session
        if s.phase == target:
            return

        prev = s.phase
        s.phase = target
        s.generation += 1

        if target != P.IN_PROGRESS:
            self._stop_poller()
        if target != P.SUCCEEDED:
            self._cancel_close_timer()
        if target != P.AWAITING_INPUT:
            s.submitting = False

        info(f"[CALIBRATION] phase -> {target.value}", prev=prev.value if prev else None)

    def _emit(self, snapshot: Dict[str, Any]) -> None:
        for cb in self._subs:
            try:
                cb(snapshot)
            except Exception as e:
                warn(f"[CALIBRATION] notify error: {e}")

    def _track(self, label: str) -> CancelToken:
        token = CancelToken(label)
        self.session.pending_requests.add(token)
        return token

    def _forget(self, token: CancelToken) -> None:
        with self._lock:
            self.session.pending_requests.discard(token)

    # -----------------------------
    # Side effects (called under the lock)
    # -----------------------------
    def _clear_error(self, _payload) -> tuple[bool, str]:
        self.session.error = None
        self.session.error_kind = None
        return True, "Wizard opened"

    def _cancel_pending(self, _payload=None, reason: str = "wizard closed") -> tuple[bool, str]:
        tokens, self.session.pending_requests = self.session.pending_requests, set()
        for token in tokens:
            token.cancel(reason)
        return True, "Wizard closed"

    def _stop_poller(self) -> None:
        handle, self.session.poll_handle = self.session.poll_handle, None
        if handle is not None:
            _future, cancel = handle
            cancel()

    def _cancel_close_timer(self) -> None:
        timer, self.session.close_timer = self.session.close_timer, None
        if timer is not None:
            timer.cancel()

    def _read_elevation(self, _payload) -> tuple[bool, str]:
        token = self._track("read_elevation")

        def _worker():
            try:
                value = self.client.read_elevation(token)
            except CalibrationCancelled:
                debug("[CALIBRATION] elevation read cancelled")
                return
            except TransportError as e:
                warn(f"[CALIBRATION] elevation read failed: {e}")
                self._forget(token)
                return
            self.dispatch(Event.ELEVATION_LOADED, value, token=token)

        self.scheduler.spawn(_worker, name="read-elevation")
        return True, "Reading elevation"

    def _store_elevation(self, value) -> tuple[bool, str]:
        s = self.session
        if s.elevation_chosen:
            # the user already picked a value; the device read is older
            debug(f"[CALIBRATION] keeping chosen elevation {s.elevation}, ignoring read {value}")
            return False, "Elevation already chosen"
        s.elevation = value
        return True, "Elevation loaded"

    def _submit(self, raw) -> tuple[bool, str]:
        s = self.session
        if s.submitting:
            warn("[CALIBRATION] submit ignored, calibration start already in flight")
            return False, "Calibration start already in progress"

        try:
            value = validate(raw)
        except ValidationError as e:
            s.error = str(e)
            s.error_kind = e.kind.value
            info(f"[CALIBRATION] invalid elevation: {e}", raw=raw)
            return False, str(e)

        s.error = None
        s.error_kind = None
        s.elevation = value
        s.elevation_chosen = True
        s.submitting = True

        generation = s.generation
        token = self._track("submit")

        def _worker():
            try:
                self.client.write_elevation(value, token)
                # air-pressure compensation needs the new elevation before calibration starts
                self.client.start_calibration(token)
            except CalibrationCancelled:
                debug("[CALIBRATION] submit cancelled")
                return
            except TransportError as e:
                self.dispatch(Event.SUBMIT_FAILED, str(e), generation=generation, token=token)
                return
            except Exception as e:
                error(f"[CALIBRATION] unexpected submit failure: {e}")
                self.dispatch(Event.SUBMIT_FAILED, str(e), generation=generation, token=token)
                return
            self.dispatch(Event.CALIBRATION_STARTED, value, generation=generation, token=token)

        info(f"[CALIBRATION] submitting elevation {value} ft")
        self.scheduler.spawn(_worker, name="submit-calibration")
        return True, "Calibration starting"

    def _submit_failed(self, message) -> tuple[bool, str]:
        s = self.session
        s.submitting = False
        s.error = f"Could not start calibration: {message}"
        s.error_kind = TransportError.__name__
        error(f"[CALIBRATION] {s.error}")
        return True, s.error

    def _start_poller(self, _payload) -> tuple[bool, str]:
        s = self.session
        poller = CompletionPoller(self.scheduler, self.poll_interval, self.poll_error_limit)
        future, cancel = poller.start(self.client.check_ready)
        s.poll_handle = (future, cancel)

        generation = s.generation
        future.add_done_callback(lambda f: self._on_poll_done(f, generation))
        return True, "Calibration started"

    def _on_poll_done(self, future: Future, generation: int) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.dispatch(Event.POLL_FAILED, str(exc), generation=generation)
        else:
            self.dispatch(Event.READY, generation=generation)

    def _poll_failed(self, message) -> tuple[bool, str]:
        s = self.session
        s.error = f"Lost contact with the device during calibration: {message}"
        s.error_kind = TransportError.__name__
        error(f"[CALIBRATION] {s.error}")
        return True, s.error

    def _arm_close_timer(self, _payload) -> tuple[bool, str]:
        s = self.session
        generation = s.generation
        s.close_timer = self.scheduler.call_later(
            self.close_after,
            lambda: self.dispatch(Event.TIMER_FIRED, generation=generation),
        )
        info("[CALIBRATION] calibration successful")
        return True, "Calibration successful"

    def _teardown(self, _payload) -> tuple[bool, str]:
        s = self.session
        # release in reverse order of acquisition: requests, poller, timer
        self._cancel_pending(reason="component teardown")
        self._stop_poller()
        self._cancel_close_timer()

        s.phase = None
        s.submitting = False
        s.generation += 1
        info("[CALIBRATION] session torn down")
        return True, "Session torn down"
