# sensor/calibration/wizard.py

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from sensor.client import DeviceClient
from sensor.calibration.machine import DEFAULT_CLOSE_AFTER_SEC, CalibrationStateMachine
from sensor.calibration.poller import DEFAULT_INTERVAL_SEC, DEFAULT_MAX_ERRORS
from sensor.calibration.scheduler import Scheduler, ThreadScheduler
from sensor.calibration.view import WizardView, render
from system.log_utils import debug, info, warn


class WizardController:
    """
    Binds one calibration state machine to the browser-facing surface.

    mount() builds a fresh session and reads the configured elevation;
    unmount() tears it down. Views are rendered from machine snapshots and
    waiters are woken on every change.
    """

    def __init__(self, client: DeviceClient, scheduler: Optional[Scheduler] = None,
                 poll_interval: float = DEFAULT_INTERVAL_SEC,
                 close_after: float = DEFAULT_CLOSE_AFTER_SEC,
                 poll_error_limit: int = DEFAULT_MAX_ERRORS):
        self.client = client
        self.scheduler = scheduler or ThreadScheduler()
        self.poll_interval = poll_interval
        self.close_after = close_after
        self.poll_error_limit = poll_error_limit

        self.machine: Optional[CalibrationStateMachine] = None
        self._changed = threading.Condition()
        self._latest: Optional[Dict[str, Any]] = None
        self._subs: List[Callable[[WizardView], None]] = []

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def mount(self) -> None:
        if self.machine is not None:
            warn("[WIZARD] mount requested but already mounted")
            return

        machine = CalibrationStateMachine(
            self.client,
            self.scheduler,
            poll_interval=self.poll_interval,
            close_after=self.close_after,
            poll_error_limit=self.poll_error_limit,
        )
        machine.subscribe(self._on_change)
        self.machine = machine
        self._on_change(machine.snapshot())
        info("[WIZARD] mounted")

        machine.load()

    def unmount(self) -> None:
        machine, self.machine = self.machine, None
        if machine is None:
            debug("[WIZARD] unmount ignored, not mounted")
            return
        machine.teardown()
        info("[WIZARD] unmounted")

    @property
    def mounted(self) -> bool:
        return self.machine is not None

    # -----------------------------
    # User events
    # -----------------------------
    def open(self) -> tuple[bool, str]:
        if not self.machine:
            return False, "Wizard not mounted"
        return self.machine.open()

    def close(self) -> tuple[bool, str]:
        if not self.machine:
            return False, "Wizard not mounted"
        return self.machine.close()

    def submit(self, raw) -> tuple[bool, str]:
        if not self.machine:
            return False, "Wizard not mounted"
        return self.machine.submit(raw)

    # -----------------------------
    # Views
    # -----------------------------
    def view(self) -> WizardView:
        with self._changed:
            snapshot = self._latest
        if snapshot is None:
            return render({"phase": None})
        return render(snapshot)

    def wait_for_change(self, revision: int, timeout: float) -> WizardView:
        """Block until the view revision differs from `revision` or timeout expires."""
        with self._changed:
            self._changed.wait_for(
                lambda: self._latest is not None and self._latest.get("revision") != revision,
                timeout=timeout,
            )
        return self.view()

    def subscribe(self, cb: Callable[[WizardView], None]) -> None:
        """Call `cb` with the rendered view after every change. Survives remounts."""
        self._subs.append(cb)

    def _on_change(self, snapshot: Dict[str, Any]) -> None:
        with self._changed:
            self._latest = snapshot
            self._changed.notify_all()

        view = render(snapshot)
        for cb in self._subs:
            try:
                cb(view)
            except Exception as e:
                warn(f"[WIZARD] subscriber error: {e}")
