from unittest.mock import MagicMock, patch

import pytest
import requests

from sensor.client import CancelToken, DeviceClient
from sensor.calibration.errors import CalibrationCancelled, TransportError


def _response(status=200, data=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    if isinstance(data, Exception):
        resp.json.side_effect = data
    else:
        resp.json.return_value = data
    return resp


@pytest.fixture
def device():
    return DeviceClient("http://sensor.local:8080/", timeout=2.0)


def test_read_elevation(device):
    with patch("sensor.client.requests.Session.request", return_value=_response(data=1500)) as req:
        assert device.read_elevation() == 1500
    req.assert_called_once_with("GET", "http://sensor.local:8080/elevation", timeout=2.0)


def test_write_elevation_sends_json_integer(device):
    with patch("sensor.client.requests.Session.request", return_value=_response()) as req:
        device.write_elevation(1000)
    req.assert_called_once_with("PUT", "http://sensor.local:8080/elevation", timeout=2.0, json=1000)


def test_start_calibration(device):
    with patch("sensor.client.requests.Session.request", return_value=_response()) as req:
        device.start_calibration()
    req.assert_called_once_with("PUT", "http://sensor.local:8080/calibrate", timeout=2.0)


@pytest.mark.parametrize("value", [True, False])
def test_check_ready(device, value):
    with patch("sensor.client.requests.Session.request", return_value=_response(data=value)):
        assert device.check_ready() is value


def test_check_ready_rejects_non_boolean(device):
    with patch("sensor.client.requests.Session.request", return_value=_response(data=1)):
        with pytest.raises(TransportError):
            device.check_ready()


def test_malformed_body_is_transport_error(device):
    with patch("sensor.client.requests.Session.request", return_value=_response(data=ValueError("bad json"))):
        with pytest.raises(TransportError):
            device.read_elevation()


def test_non_200_carries_status_code(device):
    with patch("sensor.client.requests.Session.request", return_value=_response(400, text="bad body")):
        with pytest.raises(TransportError) as exc:
            device.write_elevation(1)
    assert exc.value.status_code == 400
    assert "bad body" in str(exc.value)


def test_connection_failure_is_transport_error(device):
    with patch("sensor.client.requests.Session.request", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(TransportError) as exc:
            device.check_ready()
    assert exc.value.status_code is None


def test_cancelled_token_never_hits_the_network(device):
    token = CancelToken("test")
    token.cancel("closed")
    with patch("sensor.client.requests.Session.request") as req:
        with pytest.raises(CalibrationCancelled):
            device.start_calibration(token)
    req.assert_not_called()


def test_result_dropped_when_cancelled_mid_flight(device):
    token = CancelToken("test")

    def _respond(*args, **kwargs):
        token.cancel("unmount")
        return _response(data=True)

    with patch("sensor.client.requests.Session.request", side_effect=_respond):
        with patch("sensor.client.requests.Session.close") as close:
            with pytest.raises(CalibrationCancelled):
                device.check_ready(token)
    # abort hook plus the normal cleanup
    assert close.call_count >= 2


def test_transport_failure_after_cancel_reports_cancellation(device):
    token = CancelToken("test")

    def _fail(*args, **kwargs):
        token.cancel("closed")
        raise requests.ConnectionError("connection aborted")

    with patch("sensor.client.requests.Session.request", side_effect=_fail):
        with pytest.raises(CalibrationCancelled):
            device.read_elevation(token)


def test_cancel_token_is_idempotent_and_runs_hooks_once():
    token = CancelToken()
    hook = MagicMock()
    token.on_cancel(hook)
    token.cancel("first")
    token.cancel("second")
    hook.assert_called_once_with()
    assert token.reason == "first"


def test_hook_registered_after_cancel_runs_immediately():
    token = CancelToken()
    token.cancel()
    hook = MagicMock()
    token.on_cancel(hook)
    hook.assert_called_once_with()


def test_unregistered_hook_is_not_called():
    token = CancelToken()
    hook = MagicMock()
    unregister = token.on_cancel(hook)
    unregister()
    token.cancel()
    hook.assert_not_called()
