from fakes import FakeDeviceClient, transport_error
from sensor.reading_service import ReadingService


def test_initial_snapshot_is_offline():
    service = ReadingService(FakeDeviceClient())
    assert service.get_snapshot() == {"ppm": None, "timestamp": None, "online": False, "error": None}


def test_update_stores_reading():
    client = FakeDeviceClient()
    client.co2 = 612
    service = ReadingService(client)

    service.update_once()

    snap = service.get_snapshot()
    assert snap["ppm"] == 612
    assert snap["online"] is True
    assert snap["timestamp"]


def test_busy_device_keeps_last_value():
    client = FakeDeviceClient()
    service = ReadingService(client)
    service.update_once()

    client.co2_error = transport_error("device busy", 500)
    service.update_once()

    snap = service.get_snapshot()
    assert snap["ppm"] == 415
    assert snap["online"] is True
    assert snap["error"] == "device busy"


def test_unreachable_device_is_offline():
    client = FakeDeviceClient()
    client.co2_error = transport_error("connection refused")
    service = ReadingService(client)
    service.update_once()
    assert service.get_snapshot()["online"] is False


def test_stop_cancels_in_flight_reads():
    client = FakeDeviceClient()
    service = ReadingService(client)
    service.stop()
    service.update_once()
    assert client.calls == []
    assert service.get_snapshot()["ppm"] is None


def test_snapshot_is_a_copy():
    service = ReadingService(FakeDeviceClient())
    service.get_snapshot()["ppm"] = 1
    assert service.get_snapshot()["ppm"] is None
