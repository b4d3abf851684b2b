"""State estimation that integrates IMU signals and fuses GPS position measurements."""

from __future__ import annotations

import logging
import math
import threading

import numpy as np
from scipy.spatial.transform import Rotation

from .estimated_state import EstimatedState
from .gps_estimator import I_ATT, I_POS, I_VEL, NUM_STATES
from .simulation_object import ManualClock, Timer

_log = logging.getLogger(__name__)

_GRAVITY = np.array([0.0, 0.0, -9.81])
_E3 = np.array([0.0, 0.0, 1.0])

_H = np.zeros((3, NUM_STATES))
_H[0, I_POS] = _H[1, I_POS + 1] = _H[2, I_POS + 2] = 1.0


class GPSIMUStateEstimator:
    """Tracks a rigid body in six degrees of freedom with a nine-state Kalman filter.

    The prediction step integrates accelerometer and rate-gyro measurements;
    the measurement update fuses 3D position measurements. The first
    prediction only aligns the attitude with the measured gravity direction.
    """

    def __init__(self, clock: ManualClock, vehicle_id: int) -> None:
        self.id = vehicle_id
        self._lock = threading.RLock()
        self._estimate_timer = Timer(clock)
        self._last_good_measurement = Timer(clock)
        self.initialized = False
        self.reset_count = 0

        self.meas_reject_dist = 6.0  # [std deviations]
        self.time_constant_track_ang_vel = 0.04  # [s]
        self.system_latency = 0.0  # [s]

        self.init_std_pos = 3.0  # [m]
        self.init_std_vel = 3.0  # [m/s]
        self.init_std_att = 10.0 * math.pi / 180.0  # [rad]

        self.meas_std_acc = 5.0  # [m/s**2]
        self.meas_std_gyro = 0.1  # [rad/s]
        self.meas_std_pos = 0.25  # [m]

        self.pos = np.zeros(3)
        self.vel = np.zeros(3)
        self.att = Rotation.identity()
        self.ang_vel = np.zeros(3)
        self.last_measured_attitude = Rotation.identity()
        self.last_attitude_correction = np.zeros(3)
        self.covariance = np.zeros((NUM_STATES, NUM_STATES))
        self.reset()

    def set_statistics(
        self, meas_std_pos: float, proc_std_acc: float, proc_std_ang_vel: float
    ) -> None:
        """Set the position measurement noise and the IMU process noise."""
        self.meas_std_pos = meas_std_pos
        self.meas_std_acc = proc_std_acc
        self.meas_std_gyro = proc_std_ang_vel

    def reset(self) -> None:
        """Hard reset of all internal states."""
        with self._lock:
            self.reset_count += 1
            self.initialized = False
            self.pos = np.zeros(3)
            self.vel = np.zeros(3)
            self.att = Rotation.identity()
            self.last_measured_attitude = Rotation.identity()
            self.ang_vel = np.zeros(3)
            self._estimate_timer.reset()
            self._last_good_measurement.reset()
            self.reset_variance()

    def reset_variance(self) -> None:
        """Restore the initial diagonal covariance."""
        diag = np.concatenate(
            [
                np.full(3, self.init_std_pos ** 2),
                np.full(3, self.init_std_vel ** 2),
                np.full(3, self.init_std_att ** 2),
            ]
        )
        self.covariance = np.diag(diag)

    def current_estimate(self) -> EstimatedState:
        """A copy of the current estimate."""
        with self._lock:
            return EstimatedState(
                pos=self.pos.copy(),
                vel=self.vel.copy(),
                att=Rotation.from_quat(self.att.as_quat()),
                ang_vel=self.ang_vel.copy(),
            )

    def time_since_last_good_measurement(self) -> float:
        """Seconds since a measurement was last fused."""
        return self._last_good_measurement.seconds()

    def _align_with_gravity(self, acc: np.ndarray) -> None:
        norm = float(np.linalg.norm(acc))
        if norm == 0:
            raise ValueError("accelerometer measurement must not be zero")
        acc_unit = acc / norm
        expected = self.att.inv().apply(_E3)
        cos_angle = float(np.dot(expected, acc_unit))

        axis = np.cross(acc_unit, expected)
        axis_norm = float(np.linalg.norm(axis))
        axis = axis / axis_norm if axis_norm > 1e-6 else np.array([1.0, 0.0, 0.0])

        try:
            angle = math.acos(cos_angle)
        except ValueError:
            angle = math.pi if cos_angle < 0 else 0.0

        self.att = self.att * Rotation.from_rotvec(axis * angle)

    def _transition(
        self, dt: float, r: np.ndarray, acc: np.ndarray, gyro: np.ndarray
    ) -> np.ndarray:
        f = np.zeros((NUM_STATES, NUM_STATES))
        f[I_POS:I_POS + 3, I_POS:I_POS + 3] = np.eye(3)
        f[I_POS:I_POS + 3, I_VEL:I_VEL + 3] = dt * np.eye(3)
        f[I_VEL:I_VEL + 3, I_VEL:I_VEL + 3] = np.eye(3)

        ax, ay, az = acc
        for i in range(3):
            f[I_VEL + i, I_ATT + 0] = dt * (ay * r[i, 2] - az * r[i, 1])
            f[I_VEL + i, I_ATT + 1] = dt * (-ax * r[i, 2] + az * r[i, 0])
            f[I_VEL + i, I_ATT + 2] = dt * (ax * r[i, 1] - ay * r[i, 0])

        wx, wy, wz = dt * gyro + self.last_attitude_correction / 2.0
        f[I_ATT:I_ATT + 3, I_ATT:I_ATT + 3] = np.array(
            [
                [1.0, wz, -wy],
                [-wz, 1.0, wx],
                [wy, -wx, 1.0],
            ]
        )
        return f

    def predict(self, acc, gyro) -> None:
        """Kalman prediction step from an accelerometer and a rate-gyro measurement."""
        meas_acc = np.asarray(acc, dtype=float).copy()
        meas_gyro = np.asarray(gyro, dtype=float).copy()
        with self._lock:
            if not self.initialized:
                self.reset()
                self.initialized = True
                self._estimate_timer.reset()
                self._align_with_gravity(meas_acc)
                return

            dt = self._estimate_timer.seconds()
            self._estimate_timer.reset()

            pos, vel, att = self.pos, self.vel, self.att
            world_acc = att.apply(meas_acc) + _GRAVITY
            self.pos = pos + vel * dt
            self.vel = vel + world_acc * dt
            self.att = att * Rotation.from_rotvec(meas_gyro * dt)
            self.ang_vel = meas_gyro

            f = self._transition(dt, att.as_matrix(), meas_acc, meas_gyro)
            self.last_attitude_correction = np.zeros(3)

            cov = f @ self.covariance @ f.T
            dt2 = dt * dt
            for i in range(3):
                cov[I_VEL + i, I_VEL + i] += self.meas_std_acc ** 2 * dt2
                cov[I_ATT + i, I_ATT + i] += self.meas_std_gyro ** 2 * dt2
            self.covariance = cov

    def _restart_from(self, meas_pos: np.ndarray) -> None:
        self.pos = meas_pos
        self.vel = np.zeros(3)
        self.att = Rotation.identity()
        self.last_measured_attitude = Rotation.identity()
        self.ang_vel = np.zeros(3)
        self.reset_variance()

    def update(self, position) -> None:
        """Fuse a position measurement."""
        meas_pos = np.asarray(position, dtype=float).copy()
        with self._lock:
            if not self.initialized:
                self.initialized = True
                self._restart_from(meas_pos)
                return

            innovation_cov = _H @ self.covariance @ _H.T + self.meas_std_pos ** 2 * np.eye(3)
            if (
                not np.all(np.isfinite(innovation_cov))
                or abs(np.linalg.det(innovation_cov)) < 1e-10
            ):
                _log.error("Matrix inversion not possible due to singularity or NaN values.")
                self._restart_from(meas_pos)
                return

            gain = self.covariance @ _H.T @ np.linalg.inv(innovation_cov)
            dx = gain @ (meas_pos - self.pos)

            self.pos = self.pos + dx[I_POS:I_POS + 3]
            self.vel = self.vel + dx[I_VEL:I_VEL + 3]
            self.last_attitude_correction = dx[I_ATT:I_ATT + 3].copy()
            self.att = self.att * Rotation.from_rotvec(self.last_attitude_correction)

            cov = (np.eye(NUM_STATES) - gain @ _H) @ self.covariance
            self.covariance = 0.5 * (cov + cov.T)
            self._last_good_measurement.reset()