import pytest

from fakes import FakeDeviceClient, ManualScheduler
from sensor.calibration.machine import CalibrationStateMachine


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def client():
    return FakeDeviceClient()


@pytest.fixture
def machine(client, scheduler):
    return CalibrationStateMachine(client, scheduler, poll_interval=0.5, close_after=1.5, poll_error_limit=3)
