import pytest

from app import create_app
from fakes import FakeDeviceClient, ManualScheduler, transport_error
from sensor.calibration.wizard import WizardController
from sensor.reading_service import ReadingService
from system import services
from system.preferences import Preferences


@pytest.fixture
def env(tmp_path, monkeypatch):
    client = FakeDeviceClient()
    scheduler = ManualScheduler()
    wizard = WizardController(client, scheduler, poll_interval=0.5, close_after=1.5)
    wizard.mount()
    scheduler.run_jobs()

    monkeypatch.setattr(services, "preferences_service", Preferences(str(tmp_path / "prefs.json")))
    monkeypatch.setattr(services, "device_client", client)
    monkeypatch.setattr(services, "wizard", wizard)
    monkeypatch.setattr(services, "reading_service", ReadingService(client))

    app = create_app()
    app.config["TESTING"] = True
    yield app.test_client(), scheduler, client
    wizard.unmount()


def test_state_reports_closed_wizard(env):
    http, _, _ = env
    resp = http.get("/calibration/api/state")
    assert resp.status_code == 200
    assert resp.get_json()["phase"] == "closed"
    assert resp.get_json()["elevation"] == 500


def test_open_submit_and_finish(env):
    http, scheduler, client = env
    assert http.post("/calibration/api/open").get_json()["wizard"]["title"] == "Go Outside"

    resp = http.post("/calibration/api/submit", json={"elevation": "1200"})
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True

    scheduler.run_jobs()
    client.ready_results = [True]
    scheduler.advance(0.5)

    state = http.get("/calibration/api/state").get_json()
    assert state["status"] == "Calibration Successful"
    assert ("write_elevation", 1200) in client.calls


@pytest.mark.parametrize("value", ["", "abc", -1, 29001])
def test_invalid_elevation_is_bad_request(env, value):
    http, _, client = env
    http.post("/calibration/api/open")
    resp = http.post("/calibration/api/submit", json={"elevation": value})

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["ok"] is False
    assert body["wizard"]["error"] == body["message"]
    assert "write_elevation" not in client.names


@pytest.mark.parametrize("body", [1000, "1000", [1]])
def test_submit_body_must_be_an_object(env, body):
    http, _, client = env
    http.post("/calibration/api/open")
    resp = http.post("/calibration/api/submit", json=body)

    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False
    assert resp.get_json()["wizard"]["phase"] == "go_outside"
    assert "write_elevation" not in client.names


def test_submit_when_closed_is_conflict(env):
    http, _, _ = env
    resp = http.post("/calibration/api/submit", json={"elevation": 100})
    assert resp.status_code == 409


def test_duplicate_submit_is_conflict(env):
    http, _, _ = env
    http.post("/calibration/api/open")
    http.post("/calibration/api/submit", json={"elevation": 100})
    resp = http.post("/calibration/api/submit", json={"elevation": 100})
    assert resp.status_code == 409


def test_close_is_reported_not_applied_while_calibrating(env):
    http, scheduler, _ = env
    http.post("/calibration/api/open")
    http.post("/calibration/api/submit", json={"elevation": 100})
    scheduler.run_jobs()

    body = http.post("/calibration/api/close").get_json()
    assert body["ok"] is False
    assert body["wizard"]["phase"] == "calibration_in_progress"


def test_reading_endpoint(env):
    http, _, client = env
    services.reading_service.update_once()
    body = http.get("/calibration/api/reading").get_json()
    assert body["ppm"] == client.co2
    assert body["online"] is True

    client.co2_error = transport_error("device busy", 500)
    services.reading_service.update_once()
    body = http.get("/calibration/api/reading").get_json()
    assert body["ppm"] == client.co2
    assert body["error"] == "device busy"


def test_preferences_round_trip(env):
    http, _, client = env
    resp = http.post("/system/api/preferences", json={"ready_poll_interval_ms": 750})
    assert resp.status_code == 200
    assert resp.get_json()["updated"] == ["ready_poll_interval_ms"]
    assert http.get("/system/api/preferences").get_json()["ready_poll_interval_ms"] == 750


def test_preferences_reject_unknown_keys(env):
    http, _, _ = env
    resp = http.post("/system/api/preferences", json={"volume": 3})
    assert resp.status_code == 400
    resp = http.post("/system/api/preferences", json=[1, 2])
    assert resp.status_code == 400


def test_system_status(env):
    http, _, client = env
    body = http.get("/system/api/status").get_json()
    assert body["device_url"] == client.base_url
    assert body["wizard_mounted"] is True
