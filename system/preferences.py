from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List
from system.log_utils import debug, info, warn, error

# --- Preference Keys ---
VALID_PREF_KEYS = [
        "device_url",
        "request_timeout",
        "ready_poll_interval_ms",
        "close_after_calibration_ms",
        "poll_error_limit",
        "reading_poll_interval_ms",
        "simulator_enabled",
    ]

KEY_DEVICE_URL                 = VALID_PREF_KEYS[0]
KEY_REQUEST_TIMEOUT            = VALID_PREF_KEYS[1]
KEY_READY_POLL_INTERVAL_MS     = VALID_PREF_KEYS[2]
KEY_CLOSE_AFTER_CALIBRATION_MS = VALID_PREF_KEYS[3]
KEY_POLL_ERROR_LIMIT           = VALID_PREF_KEYS[4]
KEY_READING_POLL_INTERVAL_MS   = VALID_PREF_KEYS[5]
KEY_SIMULATOR_ENABLED          = VALID_PREF_KEYS[6]

# Unified default values
DEFAULTS: Dict[str, Any] = {
    KEY_DEVICE_URL                 : "http://192.168.0.100:8080",
    KEY_REQUEST_TIMEOUT            : 5.0,
    KEY_READY_POLL_INTERVAL_MS     : 500,
    KEY_CLOSE_AFTER_CALIBRATION_MS : 1500,
    KEY_POLL_ERROR_LIMIT           : 5,
    KEY_READING_POLL_INTERVAL_MS   : 1000,
    KEY_SIMULATOR_ENABLED          : False,
}

DEFAULT_PREFS_FILE = "config/user_prefs.json"


class Preferences:
    """
    Simple JSON-based preference store with defaults
    and callback support.
    """

    def __init__(self, filename: str | None = None):
        self.file = Path(filename or os.getenv("SENSOR_PREFS_FILE", DEFAULT_PREFS_FILE))
        self.data: Dict[str, Any] = {}
        self._callbacks: Dict[str, List[Callable[[Any], None]]] = {}
        self._dirty = False   # memory-only changes not yet on disk
        self._load()

        missing = [k for k in VALID_PREF_KEYS if k not in self.data]
        if missing:
            for k in missing:
                self.data[k] = DEFAULTS[k]
            self.save()

    # ------------------------------------------------------------------
    # Core file ops
    # ------------------------------------------------------------------

    def _load(self):
        if not self.file.exists():
            warn(f"[PREFS] file not found, will create {self.file}")
            self.data = {}
            return
        try:
            with open(self.file, "r", encoding="utf-8") as f:
                self.data = json.load(f)
        except (OSError, ValueError) as e:
            error(f"[PREFS] load failed: {e}")
            self.data = {}

    def save(self):
        """Public save method."""
        try:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.file, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2)
            self._dirty = False
        except OSError as e:
            error(f"[PREFS] save failed: {e}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, DEFAULTS.get(key) if default is None else default)

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes", "on")
        return bool(value)

    def get_seconds(self, key_ms: str) -> float:
        """Read a millisecond preference as seconds."""
        return self.get_int(key_ms, DEFAULTS[key_ms]) / 1000.0

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def update_from_dict(self, d: Dict[str, Any], write_disk: bool = False) -> List[str]:
        """Update preferences from dictionary.

        Args:
            d: Dictionary of key-value pairs to update
            write_disk: If True, saves to disk. If False, updates memory only.
        """
        updated = []
        for k, v in d.items():
            if k not in VALID_PREF_KEYS:
                debug(f"[PREFS] ignoring unknown key {k}")
                continue

            if k not in self.data or self.data[k] != v:
                self.data[k] = v
                updated.append(k)
            else:
                debug(f"[PREFS] skipping {k}, value unchanged")

        if updated:
            info(f"[PREFS] updating keys: {updated}")
            self._dirty = True

        if write_disk and self._dirty:
            self.save()

        for k in updated:
            self._notify(k, self.data[k])

        return updated

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def register_callback(self, key: str, cb: Callable[[Any], None]):
        if key not in self._callbacks:
            self._callbacks[key] = []
        self._callbacks[key].append(cb)

    def _notify(self, key: str, value: Any):
        for cb in self._callbacks.get(key, []):
            try:
                cb(value)
            except Exception as e:
                warn(f"[PREFS] callback for '{key}' failed: {e}")

    # ------------------------------------------------------------------

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.data)
