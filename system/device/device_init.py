# system/device/device_init.py
from typing import Optional

from system import services
from system.log_utils import info, debug

SIMULATOR_URL = "http://127.0.0.1:8080"


def init_preferences_service(filename: Optional[str] = None):
    from system.preferences import Preferences
    services.preferences_service = Preferences(filename)


def resolve_device_url(cli_url: Optional[str] = None) -> str:
    """CLI arg if provided, else simulator when enabled, else the stored device URL."""
    from system.preferences import KEY_DEVICE_URL, KEY_SIMULATOR_ENABLED
    prefs = services.preferences_service
    if cli_url:
        return cli_url
    if prefs.get_bool(KEY_SIMULATOR_ENABLED, False):
        return SIMULATOR_URL
    return prefs.get(KEY_DEVICE_URL)


def init_device_client(target_url: str):
    from sensor.client import DeviceClient
    from system.preferences import KEY_DEVICE_URL, KEY_REQUEST_TIMEOUT
    prefs = services.preferences_service
    services.device_client = DeviceClient(target_url, timeout=prefs.get_float(KEY_REQUEST_TIMEOUT, 5.0))
    info(f"[DEVICE] target: {target_url}")

    def _on_url_change(value):
        services.device_client.base_url = str(value).rstrip("/")
        info(f"[DEVICE] target changed: {services.device_client.base_url}")

    prefs.register_callback(KEY_DEVICE_URL, _on_url_change)


def init_wizard():
    from sensor.calibration.wizard import WizardController
    from system.preferences import (
        KEY_READY_POLL_INTERVAL_MS,
        KEY_CLOSE_AFTER_CALIBRATION_MS,
        KEY_POLL_ERROR_LIMIT,
    )
    prefs = services.preferences_service
    services.wizard = WizardController(
        services.device_client,
        poll_interval=prefs.get_seconds(KEY_READY_POLL_INTERVAL_MS),
        close_after=prefs.get_seconds(KEY_CLOSE_AFTER_CALIBRATION_MS),
        poll_error_limit=prefs.get_int(KEY_POLL_ERROR_LIMIT, 5),
    )
    services.wizard.mount()


def init_reading_service():
    from sensor.reading_service import ReadingService
    from system.preferences import KEY_READING_POLL_INTERVAL_MS
    prefs = services.preferences_service
    services.reading_service = ReadingService(
        services.device_client,
        update_interval=prefs.get_seconds(KEY_READING_POLL_INTERVAL_MS),
    )
    services.reading_service.start_background_updater()


def shutdown_services():
    debug("[DEVICE] shutting down services")
    if services.wizard is not None:
        services.wizard.unmount()
    if services.reading_service is not None:
        services.reading_service.stop()
