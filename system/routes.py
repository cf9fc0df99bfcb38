from flask import Blueprint, jsonify, request, Response

from system.log_utils import debug, info, warn
from system import services
from system.preferences import VALID_PREF_KEYS

system_bp = Blueprint("system", __name__)

VERSION = "0.1.0"

# ----------------------------------------------------------------------
# Preferences
# ----------------------------------------------------------------------
@system_bp.route("/api/preferences", methods=["GET"])
def get_preferences() -> tuple[Response, int]:
    return jsonify(services.preferences_service.as_dict()), 200

@system_bp.route("/api/preferences", methods=["POST"])
def update_preferences() -> tuple[Response, int]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"ok": False, "error": "Expected a JSON object"}), 400

    unknown = [k for k in data if k not in VALID_PREF_KEYS]
    if unknown:
        warn(f"[SYSTEM] rejected unknown preference keys: {unknown}")
        return jsonify({"ok": False, "error": f"Unknown keys: {', '.join(unknown)}"}), 400

    updated = services.preferences_service.update_from_dict(data, write_disk=True)
    info(f"[SYSTEM] preferences updated: {updated}")
    return jsonify({"ok": True, "updated": updated}), 200

# ----------------------------------------------------------------------
# Status
# ----------------------------------------------------------------------
@system_bp.route("/api/status")
def system_status() -> tuple[Response, int]:
    client = services.device_client
    wizard = services.wizard
    status = {
        "version": VERSION,
        "device_url": client.base_url if client else None,
        "wizard_mounted": bool(wizard and wizard.mounted),
    }
    debug(f"[SYSTEM] status {status}")
    return jsonify(status), 200
