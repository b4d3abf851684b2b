"""State estimation from GPS position measurements with a nine-state Kalman filter."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from .estimated_state import EstimatedState
from .prediction_pipe import PredictionPipe
from .simulation_object import ManualClock, Timer

_log = logging.getLogger(__name__)

_SMALL_TIME = 1e-6  # [s]
_NO_MESSAGE_DURATION = 1e10  # [s]
_GRAVITY = np.array([0.0, 0.0, 9.81])

I_POS = 0
I_VEL = 3
I_ATT = 6
NUM_STATES = 9

_H = np.zeros((3, NUM_STATES))
_H[0, 0] = _H[1, 1] = _H[2, 2] = 1.0


def _zeros() -> np.ndarray:
    return np.zeros(3)


@dataclass
class _Prediction:
    acc: np.ndarray = field(default_factory=_zeros)
    ang_vel: np.ndarray = field(default_factory=_zeros)
    ballistic: bool = True


class GPSStateEstimator:
    """Tracks a rigid body in six degrees of freedom from 3D position measurements.

    Translation is propagated with the commanded acceleration; the attitude
    follows the angular velocity, which tracks commanded rates as a first-order
    system. Commands take effect after a fixed communications delay. Position,
    velocity and attitude error share one 9x9 covariance.
    """

    def __init__(
        self, clock: ManualClock, vehicle_id: int, standard_communications_delay: float
    ) -> None:
        self.id = vehicle_id
        self._lock = threading.RLock()
        self._timer = Timer(clock)
        self._estimate_clock = ManualClock()
        self._last_good_measurement = Timer(clock)
        self._prediction_pipe: PredictionPipe[_Prediction] = PredictionPipe(
            clock, standard_communications_delay
        )
        self.initialized = False
        self.num_rejected = 0
        self.num_rejected_consecutively = 0

        self.meas_reject_dist = 6.0  # [std deviations]
        self.time_constant_track_ang_vel = 0.04  # [s]
        self.system_latency = 0.0  # [s]

        self.init_std_pos = 0.5  # [m]
        self.init_std_vel = 0.2  # [m/s]
        self.init_std_att = 5.0 * math.pi / 180.0  # [rad]
        self.last_attitude_correction = np.zeros(3)

        self.meas_std_pos = 0.25  # [m]
        self.proc_std_acc = 1.06  # [m/s**2]
        self.proc_std_ang_vel = 0.1  # [rad/s]

        self.pos = np.zeros(3)
        self.vel = np.zeros(3)
        self.att = Rotation.identity()
        self.ang_vel = np.zeros(3)
        self.last_measured_attitude = Rotation.identity()
        self.covariance = np.zeros((NUM_STATES, NUM_STATES))
        self.reset()

    def set_statistics(
        self, meas_std_pos: float, proc_std_acc: float, proc_std_ang_vel: float
    ) -> None:
        """Set the measurement and process noise model."""
        self.meas_std_pos = meas_std_pos
        self.proc_std_acc = proc_std_acc
        self.proc_std_ang_vel = proc_std_ang_vel

    def reset(self) -> None:
        """Hard reset of all internal states."""
        with self._lock:
            self.initialized = False
            self.pos = np.zeros(3)
            self.vel = np.zeros(3)
            self.att = Rotation.identity()
            self.last_measured_attitude = Rotation.identity()
            self.ang_vel = np.zeros(3)
            self.reset_variance()
            self._estimate_clock.reset_microseconds(int(self._timer.microseconds()))
            self._last_good_measurement.reset()

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
        """A copy of the estimate at the time it was last updated."""
        with self._lock:
            return EstimatedState(
                pos=self.pos.copy(),
                vel=self.vel.copy(),
                att=Rotation.from_quat(self.att.as_quat()),
                ang_vel=self.ang_vel.copy(),
            )

    def time_since_last_good_measurement(self) -> float:
        """Seconds since a measurement was last used."""
        return self._last_good_measurement.seconds()

    def set_predicted_values(self, angular_velocity, acceleration) -> None:
        """Queue a command that the vehicle will follow after the delay."""
        self._prediction_pipe.add(
            _Prediction(
                acc=np.asarray(acceleration, dtype=float).copy(),
                ang_vel=np.asarray(angular_velocity, dtype=float).copy(),
                ballistic=False,
            )
        )

    def set_ballistic(self) -> None:
        """Queue free fall: gravity only, angular velocity left as it is."""
        self._prediction_pipe.add(
            _Prediction(acc=np.array([0.0, 0.0, -9.81]), ang_vel=np.zeros(3), ballistic=True)
        )

    def _command_at(self, t: float) -> Tuple[_Prediction, float]:
        active = self._prediction_pipe.active_message(t)
        if active is None:
            return _Prediction(), _NO_MESSAGE_DURATION
        return active

    def _ang_vel_decay(self, dt: float, command: _Prediction) -> float:
        if command.ballistic:
            return 1.0
        return math.exp(-dt / self.time_constant_track_ang_vel)

    def prediction(self, dt: float) -> EstimatedState:
        """The state predicted ``dt`` seconds beyond the current time."""
        t_end = dt + self._timer.seconds()
        with self._lock:
            t = self._estimate_clock.seconds()
            est = EstimatedState(
                pos=self.pos.copy(), vel=self.vel.copy(), att=self.att, ang_vel=self.ang_vel.copy()
            )
            vel0 = self.vel.copy()
            ang_vel0 = self.ang_vel.copy()

        while t + _SMALL_TIME < t_end:
            command, prediction_time = self._command_at(t)
            dt_int = t_end - t
            if dt_int > prediction_time + _SMALL_TIME:
                dt_int = prediction_time

            new_pos = est.pos + vel0 * dt_int + command.acc * dt_int * dt_int / 2
            new_vel = est.vel + command.acc * dt_int
            new_att = est.att * Rotation.from_rotvec(ang_vel0 * dt_int)
            c = self._ang_vel_decay(dt_int, command)
            new_ang_vel = c * est.ang_vel + (1 - c) * command.ang_vel

            est.pos, est.vel, est.att, est.ang_vel = new_pos, new_vel, new_att, new_ang_vel
            t += dt_int
        return est

    def _transition(self, dt: float, nom_acc: np.ndarray) -> np.ndarray:
        r = self.att.as_matrix()
        f = np.zeros((NUM_STATES, NUM_STATES))
        f[I_POS:I_POS + 3, I_POS:I_POS + 3] = np.eye(3)
        f[I_POS:I_POS + 3, I_VEL:I_VEL + 3] = dt * np.eye(3)
        f[I_VEL:I_VEL + 3, I_VEL:I_VEL + 3] = np.eye(3)

        ax, ay, az = nom_acc
        for i in range(3):
            f[I_VEL + i, I_ATT + 0] = dt * (ay * r[i, 2] - az * r[i, 1])
            f[I_VEL + i, I_ATT + 1] = dt * (-ax * r[i, 2] + az * r[i, 0])
            f[I_VEL + i, I_ATT + 2] = dt * (ax * r[i, 1] - ay * r[i, 0])

        wx, wy, wz = dt * self.ang_vel + self.last_attitude_correction / 2.0
        f[I_ATT:I_ATT + 3, I_ATT:I_ATT + 3] = np.array(
            [
                [1.0, wz, -wy],
                [-wz, 1.0, wx],
                [wy, -wx, 1.0],
            ]
        )
        return f

    def _propagate_to(self, t_end: float) -> None:
        while self._estimate_clock.seconds() + _SMALL_TIME < t_end:
            t_now = self._estimate_clock.seconds()
            command, prediction_time = self._command_at(t_now)
            dt_int = t_end - t_now
            if dt_int > prediction_time + _SMALL_TIME:
                dt_int = prediction_time

            pos, vel, att, ang_vel = self.pos, self.vel, self.att, self.ang_vel
            self.pos = pos + vel * dt_int
            self.vel = vel + command.acc * dt_int
            self.att = att * Rotation.from_rotvec(ang_vel * dt_int)
            c = self._ang_vel_decay(dt_int, command)
            self.ang_vel = c * ang_vel + (1 - c) * command.ang_vel

            self._estimate_clock.advance_microseconds(int(0.5 + dt_int * 1e6))

            nom_acc = self.att.inv().apply(command.acc + _GRAVITY)
            f = self._transition(dt_int, nom_acc)
            self.last_attitude_correction = np.zeros(3)

            cov = f @ self.covariance @ f.T
            dt2 = dt_int * dt_int
            for i in range(3):
                cov[I_VEL + i, I_VEL + i] += self.proc_std_acc ** 2 * dt2
                cov[I_ATT + i, I_ATT + i] += self.proc_std_ang_vel ** 2 * dt2
            self.covariance = cov

    def _restart_from(self, meas_pos: np.ndarray) -> None:
        self.pos = meas_pos
        self.vel = np.zeros(3)
        self.att = Rotation.identity()
        self.last_measured_attitude = Rotation.identity()
        self.ang_vel = np.zeros(3)
        self._last_good_measurement.reset()
        self.reset_variance()

    def update(self, position) -> None:
        """Bring the estimate up to now and fuse a position measurement."""
        meas_pos = np.asarray(position, dtype=float).copy()
        with self._lock:
            if not self.initialized:
                self.initialized = True
                self._restart_from(meas_pos)
                return

            t0 = self._estimate_clock.seconds()
            t_end = self._timer.seconds()
            if t_end > t0:
                self._propagate_to(t_end)

            innovation_cov = _H @ self.covariance @ _H.T + self.meas_std_pos ** 2 * np.eye(3)
            if not np.all(np.isfinite(innovation_cov)) or abs(np.linalg.det(innovation_cov)) < 1e-10:
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
            self._prediction_pipe.clear_expired(self._estimate_clock.seconds())