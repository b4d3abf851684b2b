import numpy as np
import pytest

from quadflight.simulation_object import ManualClock
from quadflight.uwb_network import UWBNetwork
from quadflight.uwb_radio import UWBRadio

PERIOD_US = 10_000


def _network(target=2):
    clock = ManualClock()
    network = UWBNetwork(clock, PERIOD_US / 1e6)
    a = UWBRadio(clock, 1)
    b = UWBRadio(clock, 2)
    a.next_ranging_target = target
    b.position = np.array([3.0, 4.0, 0.0])
    network.add_radio(a)
    network.add_radio(b)
    return clock, network, a, b


def _tick(clock, network, times):
    for _ in range(times):
        clock.advance_microseconds(PERIOD_US)
        network.run()


@pytest.mark.parametrize("target, ticks", [(2, 1), (0, 3)])
def test_no_measurement_without_completed_transaction(target, ticks):
    clock, network, a, b = _network(target)
    network.run()
    _tick(clock, network, ticks)
    assert a.has_new_measurement() is False
    assert b.has_new_measurement() is False


def test_noise_free_ranging_reaches_every_radio():
    clock, network, a, b = _network()
    _tick(clock, network, 2)
    expected = float(np.linalg.norm(b.position - a.position))
    for radio in (a, b):
        meas = radio.take_measurement()
        assert meas.range == pytest.approx(expected)
        assert meas.responder_id == 2
        assert meas.failure is False


def test_outliers_use_outlier_distribution():
    clock, network, a, _ = _network()
    network.set_noise(0.0, 1.0, 0.0)
    _tick(clock, network, 2)
    assert a.take_measurement().range == 0.0


def test_missing_responder_raises():
    clock, network, _, _ = _network(target=9)
    _tick(clock, network, 1)
    clock.advance_microseconds(PERIOD_US)
    with pytest.raises(RuntimeError):
        network.run()