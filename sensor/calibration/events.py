# sensor/calibration/events.py

from enum import Enum, auto


class Event(Enum):
    """
    Inputs of the calibration state machine.
    User events come from the wizard; the rest are results of
    background work (device calls, poller, timers).
    """
    OPEN = auto()
    CLOSE = auto()
    SUBMIT = auto()                 # payload: raw elevation input
    LOAD = auto()                   # read the configured elevation

    ELEVATION_LOADED = auto()       # payload: int feet
    CALIBRATION_STARTED = auto()    # write + start acknowledged; payload: int feet
    SUBMIT_FAILED = auto()          # payload: error message

    READY = auto()                  # poller saw the device finish
    POLL_FAILED = auto()            # payload: error message

    TIMER_FIRED = auto()            # auto-close timer elapsed

    TEARDOWN = auto()               # terminal, component unmount
