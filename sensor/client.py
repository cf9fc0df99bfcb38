from __future__ import annotations

import threading
from typing import Callable, List, Optional

import requests

from sensor.calibration.errors import CalibrationCancelled, TransportError
from system.log_utils import debug, verbose, warn


class CancelToken:
    """
    Cancellation signal shared by one or more in-flight device commands.

    Cancelling runs the registered abort hooks (closing the HTTP session of
    each in-flight call) and makes every later check raise CalibrationCancelled.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self.reason: Optional[str] = None
        self._lock = threading.Lock()
        self._hooks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self.reason is not None

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self.reason is not None:
                return
            self.reason = reason
            hooks, self._hooks = self._hooks, []

        debug(f"[CLIENT] cancel {self.label or 'request'}: {reason}")
        for hook in hooks:
            try:
                hook()
            except Exception as e:
                warn(f"[CLIENT] abort hook failed: {e}")

    def on_cancel(self, hook: Callable[[], None]) -> Callable[[], None]:
        """Register an abort hook. Returns a function that unregisters it."""
        with self._lock:
            if self.reason is None:
                self._hooks.append(hook)

                def _remove():
                    with self._lock:
                        if hook in self._hooks:
                            self._hooks.remove(hook)
                return _remove

        # already cancelled: abort right away
        hook()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self.reason is not None:
            raise CalibrationCancelled(self.reason)


class DeviceClient:
    """
    HTTP client for the sensor device's embedded server.

    Every call blocks the calling thread and accepts a CancelToken. A call
    whose token gets cancelled raises CalibrationCancelled and never returns
    a result, even when the device answered.
    """

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Device commands
    # ------------------------------------------------------------------

    def read_elevation(self, token: Optional[CancelToken] = None) -> int:
        resp = self._request("GET", "/elevation", token)
        return self._parse_int(resp, "elevation")

    def write_elevation(self, value: int, token: Optional[CancelToken] = None) -> None:
        self._request("PUT", "/elevation", token, json=int(value))

    def start_calibration(self, token: Optional[CancelToken] = None) -> None:
        self._request("PUT", "/calibrate", token)

    def check_ready(self, token: Optional[CancelToken] = None) -> bool:
        resp = self._request("GET", "/isready", token)
        try:
            data = resp.json()
        except ValueError:
            raise TransportError("Malformed readiness response", resp.status_code) from None
        if not isinstance(data, bool):
            raise TransportError(f"Unexpected readiness value: {data!r}", resp.status_code)
        return data

    def read_co2(self, token: Optional[CancelToken] = None) -> int:
        resp = self._request("GET", "/co2", token)
        return self._parse_int(resp, "co2")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, token: Optional[CancelToken], **kwargs) -> requests.Response:
        token = token or CancelToken()
        token.raise_if_cancelled()

        session = requests.Session()
        unregister = token.on_cancel(session.close)
        url = f"{self.base_url}{path}"
        try:
            verbose(f"[CLIENT] {method} {url}")
            resp = session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            token.raise_if_cancelled()
            raise TransportError(f"{method} {path} failed: {e}") from e
        finally:
            unregister()
            session.close()

        # the device may have answered after cancel; drop the result
        token.raise_if_cancelled()

        if resp.status_code != 200:
            body = (resp.text or "").strip()
            raise TransportError(
                f"{method} {path} returned {resp.status_code}" + (f": {body}" if body else ""),
                resp.status_code,
            )
        return resp

    @staticmethod
    def _parse_int(resp: requests.Response, what: str) -> int:
        try:
            data = resp.json()
        except ValueError:
            raise TransportError(f"Malformed {what} response", resp.status_code) from None
        if isinstance(data, bool) or not isinstance(data, int):
            raise TransportError(f"Unexpected {what} value: {data!r}", resp.status_code)
        return data
