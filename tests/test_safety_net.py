import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from quadflight.estimated_state import EstimatedState
from quadflight.safety_net import SafetyNet, SafetyState


def _state(pos, att=None):
    return EstimatedState(pos=np.array(pos, dtype=float),
                          att=att if att is not None else Rotation.identity())


def test_default_safety_state_is_unsafe_until_seen():
    assert SafetyState().is_safe() is False
    net = SafetyNet()
    assert net.is_safe() is False
    assert "(not seen)" in net.status()


def test_hover_in_box_is_safe():
    net = SafetyNet()
    net.update(_state([0.0, 0.0, 2.0]), 0.1)
    assert net.is_safe() is True
    assert net.status() == "all OK"


def test_outside_box_is_unsafe():
    net = SafetyNet()
    net.update(_state([5.0, 0.0, 2.0]), 0.1)
    assert net.is_safe() is False
    assert net.state.unsafe_position is True
    assert net.status() == "Not safe: (unsafe position) "


def test_stale_measurement_is_unsafe():
    net = SafetyNet()
    net.update(_state([0.0, 0.0, 2.0]), 1.0)
    assert net.state.vehicle_not_seen is True
    assert net.is_safe() is False


def test_upside_down_and_low():
    net = SafetyNet()
    flipped = Rotation.from_euler("x", 180, degrees=True)
    net.update(_state([0.0, 0.0, 0.5], flipped), 0.1)
    assert net.state.upside_down_and_low is True
    net.update(_state([0.0, 0.0, 2.0], flipped), 0.1)
    assert net.state.upside_down_and_low is False


def test_user_unsafe_persists():
    net = SafetyNet()
    net.set_unsafe()
    net.update(_state([0.0, 0.0, 2.0]), 0.1)
    assert net.is_safe() is False
    assert "(user triggered)" in net.status()


def test_set_safe_corners():
    net = SafetyNet()
    net.set_safe_corners([-10, -10, -1], [10, 10, 10], 0.2)
    net.update(_state([5.0, 0.0, 2.0]), 0.1)
    assert net.is_safe() is True
    with pytest.raises(ValueError):
        net.set_safe_corners([0, 0, 0], [1, -1, 1], 0.5)


def test_state_is_a_copy():
    net = SafetyNet()
    snapshot = net.state
    snapshot.user_unsafe = True
    assert net.state.user_unsafe is False