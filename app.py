from flask import Flask, jsonify
import sys
from typing import Optional

from system.log_utils import debug, info
from system.routes import system_bp, VERSION
from sensor.routes import calibration_bp


def init_services(target_url: Optional[str] = None, prefs_file: Optional[str] = None) -> None:
    """Initialize the service singletons in dependency order."""
    debug("starting service", version=VERSION)

    from system.device.device_init import (
        init_preferences_service,
        resolve_device_url,
        init_device_client,
        init_wizard,
        init_reading_service,
    )
    init_preferences_service(prefs_file)
    init_device_client(resolve_device_url(target_url))
    init_wizard()
    init_reading_service()


def create_app() -> Flask:
    app = Flask(__name__)

    app.register_blueprint(calibration_bp, url_prefix="/calibration")
    app.register_blueprint(system_bp, url_prefix="/system")

    @app.route('/')
    def index():
        return jsonify({"name": "co2-sensor-manager", "version": VERSION})

    return app


def cleanup():
    """Clean up resources before exit."""
    debug("Cleaning up resources...")
    from system.device.device_init import shutdown_services
    shutdown_services()
    debug("Cleanup complete")


if __name__ == '__main__':
    import atexit

    init_services(sys.argv[1] if len(sys.argv) > 1 else None)
    atexit.register(cleanup)

    info("Serving via Flask dev server on http://0.0.0.0:5001")
    create_app().run(host="0.0.0.0", port=5001, debug=False, use_reloader=False)
