from flask import Blueprint, jsonify, Response, stream_with_context, request
from system import services
from system.log_utils import verbose, debug, info, warn
from sensor.sse_utils import SseDeltaTracker

import json, time

calibration_bp = Blueprint("calibration", __name__)

SSE_WAIT_SEC = 0.5
KEEP_ALIVE_SEC = 10


def _wizard_response(ok: bool, msg: str, status: int = 200):
    body = {"ok": ok, "message": msg, "wizard": services.wizard.view().to_dict()}
    return jsonify(body), status

# ----------------------------------------------------------------------
# Wizard state
# ----------------------------------------------------------------------
@calibration_bp.route("/api/state")
def wizard_state() -> tuple[Response, int]:
    return jsonify(services.wizard.view().to_dict()), 200

@calibration_bp.route("/api/reading")
def latest_reading() -> tuple[Response, int]:
    return jsonify(services.reading_service.get_snapshot()), 200

# ----------------------------------------------------------------------
# Wizard events
# ----------------------------------------------------------------------
@calibration_bp.route("/api/open", methods=["POST"])
def open_wizard() -> tuple[Response, int]:
    ok, msg = services.wizard.open()
    if not ok:
        debug(f"[WIZARD] open ignored {msg}")
    return _wizard_response(ok, msg)

@calibration_bp.route("/api/close", methods=["POST"])
def close_wizard() -> tuple[Response, int]:
    ok, msg = services.wizard.close()
    if not ok:
        debug(f"[WIZARD] close ignored {msg}")
    return _wizard_response(ok, msg)

@calibration_bp.route("/api/submit", methods=["POST"])
def submit_elevation() -> tuple[Response, int]:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        warn("[WIZARD] submit rejected: body is not a JSON object")
        return _wizard_response(False, "Expected a JSON object", 400)
    raw = data.get("elevation", "")
    info("[WIZARD] submit requested", elevation=raw)

    ok, msg = services.wizard.submit(raw)
    if ok:
        return _wizard_response(ok, msg)

    view = services.wizard.view()
    if view.error_kind in ("EmptyOrNonNumeric", "OutOfRange") and view.error == msg:
        return _wizard_response(False, msg, 400)

    warn(f"[WIZARD] submit rejected: {msg}")
    return _wizard_response(False, msg, 409)

# ----------------------------------------------------------------------
# Server-Sent Events
# ----------------------------------------------------------------------
@calibration_bp.route("/api/events")
def sse_events() -> Response:
    """SSE stream of wizard view changes merged with the latest CO2 reading."""
    def event_stream():
        last_payload = None
        last_beat = time.monotonic()
        revision = None
        tracker = SseDeltaTracker()

        while True:
            try:
                view = services.wizard.wait_for_change(revision, timeout=SSE_WAIT_SEC)
                revision = view.revision
                reading = services.reading_service.get_snapshot() if services.reading_service else None

                state = tracker.build(view.to_dict(), reading)
                payload = json.dumps(state, sort_keys=True)
                if payload != last_payload:
                    yield f"data: {payload}\n\n"
                    last_payload = payload
                    last_beat = time.monotonic()
                    verbose(f"[SSE] sent update: {state}")
                elif time.monotonic() - last_beat > KEEP_ALIVE_SEC:
                    yield ": keep-alive\n\n"
                    last_beat = time.monotonic()
                    verbose("[SSE] sent keep-alive")

            except GeneratorExit:
                debug("[SSE] client disconnected")
                break
            except Exception as e:
                warn(f"[SSE] stream error: {e}")
                time.sleep(1)

    return Response(stream_with_context(event_stream()), mimetype="text/event-stream")
