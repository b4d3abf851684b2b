import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from quadflight.mocap_estimator import MAX_NUM_CONSECUTIVE_REJECTION, MocapStateEstimator
from quadflight.simulation_object import ManualClock


def make(delay=0.0):
    clock = ManualClock()
    return clock, MocapStateEstimator(clock, 1, delay)


def test_reset_variance_constants():
    _, est = make()
    assert np.allclose(est.variance_position, [[25.0, 0.0], [0.0, 25.0]])
    assert np.allclose(est.variance_attitude, [[1.0, 0.0], [0.0, 400.0]])
    assert est.initialized is False


def test_first_update_initializes():
    clock, est = make()
    att = Rotation.from_rotvec([0.0, 0.0, 0.3])
    est.update([1.0, 2.0, 3.0], att)
    assert est.initialized is True
    assert np.allclose(est.pos, [1.0, 2.0, 3.0])
    assert np.allclose(est.vel, 0.0)
    assert (est.att.inv() * att).magnitude() < 1e-12
    assert est.time_since_last_good_measurement() == 0.0


def test_prediction_without_messages_is_constant_velocity():
    clock, est = make()
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    est.vel = np.array([1.0, -2.0, 0.5])
    clock.advance_microseconds(500_000)
    state = est.prediction(0.0)
    assert np.allclose(state.pos, est.vel * 0.5)
    assert np.allclose(state.vel, est.vel)


def test_prediction_applies_active_command():
    clock, est = make(delay=0.0)
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    est.set_predicted_values([0.0, 0.0, 0.0], [0.0, 0.0, 2.0])
    clock.advance_microseconds(200_000)
    state = est.prediction(0.0)
    assert state.pos[2] == pytest.approx(0.04)
    assert state.vel[2] == pytest.approx(0.4)


def test_delayed_command_not_active_at_start_is_ignored():
    clock, est = make(delay=0.1)
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    est.set_predicted_values([0.0, 0.0, 0.0], [0.0, 0.0, 2.0])
    clock.advance_microseconds(300_000)
    state = est.prediction(0.0)
    assert np.allclose(state.pos, 0.0)
    assert np.allclose(state.vel, 0.0)


def test_angular_velocity_tracks_command():
    clock, est = make()
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    est.set_predicted_values([0.0, 0.0, 1.0], [0.0, 0.0, 0.0])
    state = est.prediction(1.0)
    assert np.allclose(state.ang_vel, [0.0, 0.0, 1.0], atol=1e-6)


def test_ballistic_falls_and_keeps_angular_velocity():
    clock, est = make()
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    est.ang_vel = np.array([0.0, 0.0, 0.7])
    est.set_ballistic()
    state = est.prediction(1.0)
    assert state.vel[2] == pytest.approx(-9.81)
    assert np.allclose(state.ang_vel, [0.0, 0.0, 0.7])


def test_repeated_measurements_converge_and_stay_symmetric():
    clock, est = make()
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    target = np.array([1.0, -0.5, 2.0])
    for _ in range(300):
        clock.advance_microseconds(5_000)
        est.update(target, Rotation.identity())
    assert np.allclose(est.pos, target, atol=0.05)
    assert np.allclose(est.variance_position, est.variance_position.T)
    assert np.allclose(est.variance_attitude, est.variance_attitude.T)
    assert est.variance_position[0, 0] < 25.0


def test_attitude_converges_to_measurement():
    clock, est = make()
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    meas = Rotation.from_rotvec([0.0, 0.0, 0.1])
    for _ in range(300):
        clock.advance_microseconds(5_000)
        est.update([0.0, 0.0, 0.0], meas)
    assert (est.att.inv() * meas).magnitude() < 0.02


def test_outlier_rejected():
    clock, est = make()
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    clock.advance_microseconds(10_000)
    est.update([100.0, 0.0, 0.0], Rotation.identity())
    assert est.num_rejected == 1
    assert np.allclose(est.pos, 0.0)
    assert est.time_since_last_good_measurement() == pytest.approx(0.01)


def test_forced_accept_after_consecutive_rejections_resets():
    clock, est = make()
    est.update([0.0, 0.0, 0.0], Rotation.identity())
    for _ in range(MAX_NUM_CONSECUTIVE_REJECTION):
        clock.advance_microseconds(10_000)
        est.update([100.0, 0.0, 0.0], Rotation.identity())
    assert est.num_rejected == MAX_NUM_CONSECUTIVE_REJECTION
    clock.advance_microseconds(10_000)
    est.update([100.0, 0.0, 0.0], Rotation.identity())
    assert est.num_rejected == MAX_NUM_CONSECUTIVE_REJECTION
    assert est.num_rejected_consecutively == 0
    assert est.initialized is False
    clock.advance_microseconds(10_000)
    est.update([100.0, 0.0, 0.0], Rotation.identity())
    assert est.initialized is True
    assert np.allclose(est.pos, [100.0, 0.0, 0.0])


def test_reset_clears_state():
    clock, est = make()
    est.update([3.0, 0.0, 0.0], Rotation.from_rotvec([0.2, 0.0, 0.0]))
    est.reset()
    assert est.initialized is False
    assert np.allclose(est.pos, 0.0)
    assert est.att.magnitude() == pytest.approx(0.0)


def test_set_statistics():
    _, est = make()
    est.set_statistics(0.1, 0.2, 0.3, 0.4)
    assert (est.meas_std_pos, est.meas_std_att, est.proc_std_pos, est.proc_std_att) == (
        0.1,
        0.2,
        0.3,
        0.4,
    )