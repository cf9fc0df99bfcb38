import os
import random
import threading
import time
from typing import Optional

from flask import Flask, Response, jsonify, request

# Network config
HOST = "0.0.0.0"
PORT = 8080

# Based on https://www.esrl.noaa.gov/gmd/ccgg/trends/; ambient is +/-5ppm ish.
AMBIENT_PPM = 410

# One fresh measurement per window; requests in between get the last value.
MEASURE_PERIOD_SEC = 15

# Sanity bound for configured elevation (approximate height of Mt. Everest).
MAX_ELEVATION_FT = 29_000
ELEVATION_STEP_FT = 500

CALIBRATION_SEC = float(os.environ.get("SENSOR_SIM_CALIBRATION_SEC", "20"))


def round_to(value: int, nearest: int) -> int:
    """Round to the nearest multiple, halves going up (device stores 500 ft steps)."""
    lower = value - value % nearest
    return lower if value % nearest < nearest // 2 else lower + nearest


class SensorSimulator:
    """Stateful CO2 sensor. Busy (locked) while a calibration runs."""

    def __init__(self, calibration_sec: float = CALIBRATION_SEC, measure_period: float = MEASURE_PERIOD_SEC):
        self.calibration_sec = calibration_sec
        self.measure_period = measure_period

        self._device = threading.Lock()   # held for the whole calibration
        self._lock = threading.Lock()
        self.elevation_ft = 0
        self.offset_ppm = random.randint(-40, 40)
        self.calibrations = 0
        self._last_ppm: Optional[int] = None
        self._last_measure_at: Optional[float] = None

    # --------- Helpers ---------
    def is_ready(self) -> bool:
        if self._device.acquire(blocking=False):
            self._device.release()
            return True
        return False

    def _with_device(self, fn):
        if not self._device.acquire(blocking=False):
            raise RuntimeError("device busy")
        try:
            return fn()
        finally:
            self._device.release()

    # --------- Device actions ---------
    def measure(self) -> int:
        with self._lock:
            now = time.monotonic()
            fresh = self._last_measure_at is None or now - self._last_measure_at >= self.measure_period
            if not fresh:
                return self._last_ppm

        def _read():
            return AMBIENT_PPM + self.offset_ppm + random.randint(-5, 5)

        ppm = self._with_device(_read)
        with self._lock:
            self._last_ppm = ppm
            self._last_measure_at = time.monotonic()
        return ppm

    def read_elevation(self) -> int:
        return self._with_device(lambda: self.elevation_ft)

    def set_elevation(self, feet: int) -> None:
        def _set():
            self.elevation_ft = round_to(feet, ELEVATION_STEP_FT)
        self._with_device(_set)

    def calibrate(self) -> None:
        started = threading.Event()

        def _run():
            with self._device:
                started.set()
                time.sleep(self.calibration_sec)
                self.offset_ppm = 0
                self.calibrations += 1

        threading.Thread(target=_run, daemon=True).start()
        # return once the device is locked so /isready flips to false right away
        started.wait()


def create_simulator(sim: Optional[SensorSimulator] = None) -> Flask:
    sim = sim or SensorSimulator()
    app = Flask(__name__)
    app.config["SIMULATOR"] = sim

    def _error(msg: str, status: int = 500):
        return Response(msg, status=status, mimetype="text/plain")

    @app.get("/co2")
    def co2():
        try:
            return jsonify(sim.measure())
        except RuntimeError as e:
            return _error(str(e))

    @app.get("/elevation")
    def get_elevation():
        try:
            return jsonify(sim.read_elevation())
        except RuntimeError as e:
            return _error(str(e))

    @app.put("/elevation")
    def put_elevation():
        value = request.get_json(force=True, silent=True)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return _error("expected a non-negative integer elevation in feet", 400)
        if value > MAX_ELEVATION_FT:
            return _error(f"height {value} ft. does not exist on earth", 400)
        try:
            sim.set_elevation(value)
        except RuntimeError as e:
            return _error(str(e))
        return Response(status=200)

    @app.put("/calibrate")
    def put_calibrate():
        sim.calibrate()
        return Response(status=200)

    @app.get("/isready")
    def isready():
        return jsonify(sim.is_ready())

    return app


def start_server(host: str = HOST, port: int = PORT):
    from waitress import serve
    print(f"[SIMULATOR] Listening on {host}:{port} | CALIBRATION_SEC={CALIBRATION_SEC:.1f}s")
    serve(create_simulator(), host=host, port=port, threads=8)


if __name__ == "__main__":
    start_server()
