import math

import numpy as np
import pytest

from quadflight.gps_imu_estimator import GPSIMUStateEstimator
from quadflight.simulation_object import ManualClock

GRAVITY_UP = [0.0, 0.0, 9.81]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def estimator(clock):
    return GPSIMUStateEstimator(clock, 1)


def _initialized(clock):
    est = GPSIMUStateEstimator(clock, 1)
    est.predict(GRAVITY_UP, [0.0, 0.0, 0.0])
    return est


def test_construction_state(estimator):
    assert estimator.reset_count == 1
    assert not estimator.initialized
    diag = np.diag(estimator.covariance)
    assert diag[:3] == pytest.approx([3.0 ** 2] * 3)
    assert diag[3:6] == pytest.approx([3.0 ** 2] * 3)
    assert diag[6:] == pytest.approx([(10.0 * math.pi / 180.0) ** 2] * 3)


def test_first_predict_initializes_with_level_attitude(estimator):
    estimator.predict(GRAVITY_UP, [0.0, 0.0, 0.0])
    assert estimator.initialized
    assert estimator.reset_count == 2
    assert estimator.att.magnitude() == pytest.approx(0.0, abs=1e-9)


def test_first_predict_aligns_measured_gravity_with_world_up(estimator):
    estimator.predict([9.81, 0.0, 0.0], [0.0, 0.0, 0.0])
    assert estimator.att.apply([1.0, 0.0, 0.0]) == pytest.approx([0.0, 0.0, 1.0], abs=1e-9)


def test_upside_down_gravity_gives_half_turn(estimator):
    estimator.predict([0.0, 0.0, -9.81], [0.0, 0.0, 0.0])
    assert estimator.att.magnitude() == pytest.approx(math.pi, abs=1e-9)
    assert estimator.att.apply([0.0, 0.0, -1.0]) == pytest.approx([0.0, 0.0, 1.0], abs=1e-9)


def test_zero_acceleration_is_rejected(estimator):
    with pytest.raises(ValueError):
        estimator.predict([0.0, 0.0, 0.0], [0.0, 0.0, 0.0])


def test_hover_prediction_keeps_state(clock):
    est = _initialized(clock)
    clock.advance_microseconds(10_000)
    est.predict(GRAVITY_UP, [0.0, 0.0, 0.0])
    assert est.pos == pytest.approx([0.0, 0.0, 0.0], abs=1e-9)
    assert est.vel == pytest.approx([0.0, 0.0, 0.0], abs=1e-9)


def test_prediction_integrates_acceleration(clock):
    est = _initialized(clock)
    clock.advance_microseconds(100_000)
    est.predict([2.0, 0.0, 9.81], [0.0, 0.0, 0.0])
    assert est.vel[0] == pytest.approx(2.0 * 0.1)
    assert est.pos[0] == pytest.approx(0.0)
    clock.advance_microseconds(100_000)
    est.predict([0.0, 0.0, 9.81], [0.0, 0.0, 0.0])
    assert est.pos[0] == pytest.approx(2.0 * 0.1 * 0.1)
    assert est.vel[0] == pytest.approx(2.0 * 0.1)


def test_prediction_integrates_gyro(clock):
    est = _initialized(clock)
    clock.advance_microseconds(100_000)
    est.predict(GRAVITY_UP, [0.0, 0.0, 1.0])
    assert est.att.as_rotvec() == pytest.approx([0.0, 0.0, 0.1], abs=1e-9)
    assert est.ang_vel == pytest.approx([0.0, 0.0, 1.0])


def test_prediction_grows_symmetric_covariance(clock):
    est = _initialized(clock)
    before = est.covariance.copy()
    clock.advance_microseconds(50_000)
    est.predict([1.0, 0.5, 9.81], [0.2, -0.1, 0.3])
    assert np.allclose(est.covariance, est.covariance.T)
    assert np.all(np.diag(est.covariance) >= np.diag(before) - 1e-12)
    assert est.covariance[0, 0] > before[0, 0]


def test_first_update_initializes_position(estimator):
    estimator.update([1.0, 2.0, 3.0])
    assert estimator.initialized
    assert estimator.pos == pytest.approx([1.0, 2.0, 3.0])
    assert estimator.vel == pytest.approx([0.0, 0.0, 0.0])


def test_update_moves_estimate_towards_measurement(clock):
    est = _initialized(clock)
    clock.advance_microseconds(200_000)
    var_before = est.covariance[0, 0]
    est.update([1.0, 0.0, 0.0])
    assert 0.0 < est.pos[0] < 1.0
    assert est.pos[0] > 0.9
    assert est.covariance[0, 0] < var_before
    assert np.allclose(est.covariance, est.covariance.T)
    assert est.time_since_last_good_measurement() == pytest.approx(0.0)


def test_singular_innovation_restarts_from_measurement(clock):
    est = _initialized(clock)
    est.set_statistics(0.0, 5.0, 0.1)
    est.covariance = np.zeros((9, 9))
    est.update([4.0, 5.0, 6.0])
    assert est.pos == pytest.approx([4.0, 5.0, 6.0])
    assert est.covariance[0, 0] == pytest.approx(3.0 ** 2)


def test_nan_covariance_restarts_from_measurement(clock):
    est = _initialized(clock)
    est.covariance = np.full((9, 9), np.nan)
    est.update([-1.0, 0.0, 2.0])
    assert est.pos == pytest.approx([-1.0, 0.0, 2.0])
    assert np.all(np.isfinite(est.covariance))


def test_current_estimate_is_independent_copy(clock):
    est = _initialized(clock)
    snapshot = est.current_estimate()
    snapshot.pos[0] = 42.0
    assert est.pos[0] == pytest.approx(0.0)
    assert snapshot.att.magnitude() == pytest.approx(est.att.magnitude())


def test_reset_clears_initialization(clock):
    est = _initialized(clock)
    est.update([1.0, 1.0, 1.0])
    est.reset()
    assert not est.initialized
    assert est.pos == pytest.approx([0.0, 0.0, 0.0])
    assert est.reset_count == 3