from __future__ import annotations
from typing import Dict, Any


class SseDeltaTracker:
    """
    Tracks the last-sent reading snapshot to include it in SSE payloads only when it changed.

    Usage:
        tracker = SseDeltaTracker()
        state = tracker.build(wizard_view, reading)
    """

    def __init__(self) -> None:
        self._last_reading: Dict[str, Any] | None = None

    def build(
        self,
        wizard: Dict[str, Any] | None,
        reading: Dict[str, Any] | None,
    ) -> Dict[str, Any]:
        """Return SSE state including the reading only when it changed, along with the current wizard view."""
        reading_changed = reading is not None and reading != self._last_reading
        if reading_changed:
            self._last_reading = reading

        return SseDeltaTracker.build_state(wizard, reading if reading_changed else None)

    @staticmethod
    def build_state(
        wizard: Dict[str, Any] | None,
        reading: Dict[str, Any] | None,
    ) -> Dict[str, Any]:
        """
        Assemble SSE state payload.

        The wizard view is always sent; the reading only when present (changed).
        Frontend keeps the previous reading when the field is missing.
        """
        state: Dict[str, Any] = {"wizard": wizard or {}}
        if reading is not None:
            state["reading"] = reading
        return state
