# reading_service.py
from __future__ import annotations

import threading
from typing import Any, Dict

from sensor.client import CancelToken, DeviceClient
from sensor.calibration.errors import CalibrationCancelled, TransportError
from system.log_utils import debug, verbose, warn
from system.utils import get_formatted_timestamp


class ReadingService:
    """Periodic CO2 reading poller feeding the dashboard snapshot."""

    def __init__(self, client: DeviceClient, update_interval: float = 1.0):
        self.client = client
        self.latest_reading: Dict[str, Any] = {"ppm": None, "timestamp": None, "online": False, "error": None}

        self._lock = threading.Lock()
        self._update_interval = update_interval
        self._stop_event = threading.Event()
        self._token = CancelToken("co2")
        self._updater_thread: threading.Thread | None = None

    def get_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self.latest_reading.copy()

    def update_once(self) -> None:
        try:
            ppm = self.client.read_co2(self._token)
        except CalibrationCancelled:
            return
        except TransportError as e:
            # keep the last good value; the device is busy while calibrating
            warn(f"[READING] co2 read failed: {e}")
            with self._lock:
                self.latest_reading["online"] = e.status_code is not None
                self.latest_reading["error"] = str(e)
            return

        verbose(f"[READING] co2={ppm}ppm")
        with self._lock:
            self.latest_reading = {
                "ppm": ppm,
                "timestamp": get_formatted_timestamp(),
                "online": True,
                "error": None,
            }

    def start_background_updater(self) -> None:
        if self._updater_thread and self._updater_thread.is_alive():
            return

        self._stop_event.clear()
        self._token = CancelToken("co2")

        def _loop() -> None:
            while not self._stop_event.is_set():
                self.update_once()
                self._stop_event.wait(self._update_interval)
            debug("[READING] updater stopped")

        self._updater_thread = threading.Thread(target=_loop, name="ReadingPoller", daemon=True)
        self._updater_thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._token.cancel("reading service stopped")
