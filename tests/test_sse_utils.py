from sensor.sse_utils import SseDeltaTracker


def test_reading_sent_only_when_changed():
    tracker = SseDeltaTracker()
    wizard = {"phase": "closed"}
    reading = {"ppm": 410}

    assert tracker.build(wizard, reading) == {"wizard": wizard, "reading": reading}
    assert tracker.build(wizard, dict(reading)) == {"wizard": wizard}
    assert tracker.build(wizard, {"ppm": 420}) == {"wizard": wizard, "reading": {"ppm": 420}}


def test_wizard_always_present():
    tracker = SseDeltaTracker()
    assert tracker.build(None, None) == {"wizard": {}}
