import numpy as np

from quadflight.simulation_object import ManualClock
from quadflight.uwb_radio import RangingMeasurement, UWBRadio


def test_new_radio_has_no_measurement():
    radio = UWBRadio(ManualClock(), 3)
    assert radio.id == 3
    assert radio.next_ranging_target == 0
    assert np.array_equal(radio.position, np.zeros(3))
    assert radio.has_new_measurement() is False


def test_set_measurement_marks_new():
    radio = UWBRadio(ManualClock(), 1)
    radio.set_measurement(RangingMeasurement(have_new=False, range=2.5, responder_id=4))
    assert radio.has_new_measurement() is True


def test_take_measurement_returns_it_and_clears_flag():
    radio = UWBRadio(ManualClock(), 1)
    radio.set_measurement(RangingMeasurement(range=2.5, responder_id=4))
    meas = radio.take_measurement()
    assert meas.have_new is True
    assert meas.range == 2.5
    assert meas.responder_id == 4
    assert radio.has_new_measurement() is False
    assert meas.have_new is True


def test_set_measurement_does_not_alias_argument():
    radio = UWBRadio(ManualClock(), 1)
    original = RangingMeasurement(range=1.0)
    radio.set_measurement(original)
    radio.take_measurement()
    assert original.have_new is False