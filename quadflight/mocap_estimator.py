"""State estimation from motion-capture position and attitude measurements."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field

import numpy as np
from scipy.spatial.transform import Rotation

from .estimated_state import EstimatedState, _vector
from .prediction_pipe import PredictionPipe
from .simulation_object import ManualClock, Timer

_log = logging.getLogger(__name__)

MAX_NUM_CONSECUTIVE_REJECTION = 10
_SMALL_TIME = 1e-6  # [s]
_NO_MESSAGE_DURATION = 1e10  # [s]
_H = np.array([[1.0, 0.0]])


@dataclass
class _Prediction:
    acc: np.ndarray = field(default_factory=_vector)
    ang_vel: np.ndarray = field(default_factory=_vector)
    ballistic: bool = True


def _propagate_variance(variance: np.ndarray, dt: float, proc_std: float) -> np.ndarray:
    a = np.array([[1.0, dt], [0.0, 1.0]])
    dt2 = dt * dt
    q = np.diag([dt2 * dt2 * proc_std / 4, dt2 * proc_std])
    return a @ variance @ a.T + q


def _kalman_step(variance: np.ndarray, innovation: float) -> tuple:
    """Gain (value, rate) and updated variance for a scalar value measurement."""
    gain = variance @ _H.T / innovation
    return gain[:, 0], (np.eye(2) - gain @ _H) @ variance


def _symmetric(matrix: np.ndarray) -> np.ndarray:
    return (matrix + matrix.T) * 0.5


class MocapStateEstimator:
    """Tracks a rigid body in six degrees of freedom from mocap measurements.

    Position and attitude are fully decoupled, and each position axis shares one
    two-state (value, rate) variance. Between measurements the state is carried
    forward with the commanded acceleration and angular velocity, which take
    effect after a fixed communications delay. The angular velocity tracks the
    command as a first-order system.
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
        self.num_rejected = 0
        self.num_rejected_consecutively = 0

        self.meas_reject_dist = 6.0  # [std deviations]
        self.time_constant_track_ang_vel = 0.04  # [s]

        self.meas_std_pos = 0.02  # [m]
        self.meas_std_att = 5 * math.pi / 180  # [rad]
        self.proc_std_pos = 1.0 * 9.81  # [m/s**2]
        self.proc_std_att = 200.0  # [rad/s**2]
        self.reset()

    def set_statistics(
        self, meas_std_pos: float, meas_std_att: float, proc_std_pos: float, proc_std_att: float
    ) -> None:
        """Set the measurement and process noise model."""
        self.meas_std_pos = meas_std_pos
        self.meas_std_att = meas_std_att
        self.proc_std_pos = proc_std_pos
        self.proc_std_att = proc_std_att

    def _set_state(self, pos: np.ndarray, att: Rotation) -> None:
        self.pos = pos
        self.vel = _vector()
        self.att = att
        self.last_measured_attitude = att
        self.ang_vel = _vector()

    def reset(self) -> None:
        """Hard reset of all internal states."""
        with self._lock:
            self.initialized = False
            self._set_state(_vector(), Rotation.identity())
            self.reset_variance()
            self._estimate_clock.reset_microseconds(int(self._timer.microseconds()))
            self._last_good_measurement.reset()

    def reset_variance(self) -> None:
        """Restore the large initial variances."""
        self.variance_position = np.diag([25.0, 25.0])
        self.variance_attitude = np.diag([1.0, 400.0])

    def time_since_last_good_measurement(self) -> float:
        """Seconds since a measurement was last accepted."""
        return self._last_good_measurement.seconds()

    def set_predicted_values(self, angular_velocity, acceleration) -> None:
        """Queue a command that the vehicle will follow after the delay."""
        self._prediction_pipe.add(
            _Prediction(_vector(acceleration), _vector(angular_velocity), ballistic=False)
        )

    def set_ballistic(self) -> None:
        """Queue free fall: gravity only, angular velocity left as it is."""
        self._prediction_pipe.add(_Prediction(acc=_vector((0.0, 0.0, -9.81))))

    def _segment(self, t: float, t_end: float) -> tuple:
        """The command active at ``t`` and how long it may be integrated for."""
        active = self._prediction_pipe.active_message(t)
        command, prediction_time = active if active is not None else (
            _Prediction(),
            _NO_MESSAGE_DURATION,
        )
        dt_int = t_end - t
        if dt_int > prediction_time + _SMALL_TIME:
            dt_int = prediction_time
        return command, dt_int

    def _tracked_ang_vel(self, ang_vel: np.ndarray, command: _Prediction, dt: float):
        c = 1.0 if command.ballistic else math.exp(-dt / self.time_constant_track_ang_vel)
        return c * ang_vel + (1 - c) * command.ang_vel

    def prediction(self, dt: float) -> EstimatedState:
        """The state predicted ``dt`` seconds beyond the current time."""
        t_end = dt + self._timer.seconds()
        with self._lock:
            t = self._estimate_clock.seconds()
            est = EstimatedState(self.pos, self.vel, self.att, self.ang_vel).copy()
        vel0, ang_vel0 = est.vel.copy(), est.ang_vel.copy()

        while t + _SMALL_TIME < t_end:
            command, dt_int = self._segment(t, t_end)
            est.pos = est.pos + vel0 * dt_int + command.acc * dt_int * dt_int / 2
            est.vel = est.vel + command.acc * dt_int
            est.att = est.att * Rotation.from_rotvec(ang_vel0 * dt_int)
            est.ang_vel = self._tracked_ang_vel(est.ang_vel, command, dt_int)
            t += dt_int
        return est

    def _propagate_to(self, t_end: float) -> None:
        while self._estimate_clock.seconds() + _SMALL_TIME < t_end:
            command, dt_int = self._segment(self._estimate_clock.seconds(), t_end)
            self.pos = self.pos + self.vel * dt_int
            self.vel = self.vel + command.acc * dt_int
            self.att = self.att * Rotation.from_rotvec(self.ang_vel * dt_int)
            self.ang_vel = self._tracked_ang_vel(self.ang_vel, command, dt_int)

            self._estimate_clock.advance_microseconds(int(0.5 + dt_int * 1e6))

            self.variance_position = _propagate_variance(
                self.variance_position, dt_int, self.proc_std_pos
            )
            self.variance_attitude = _propagate_variance(
                self.variance_attitude, dt_int, self.proc_std_att
            )

    def _innovations(self) -> tuple:
        return (
            self.variance_position[0, 0] + self.meas_std_pos ** 2,
            self.variance_attitude[0, 0] + self.meas_std_att ** 2,
        )

    def update(self, position, attitude: Rotation) -> None:
        """Bring the estimate up to now and fuse a position and attitude measurement."""
        meas_pos = _vector(position)
        with self._lock:
            if not self.initialized:
                self.initialized = True
                self._set_state(meas_pos, attitude)
                self._last_good_measurement.reset()
                self.reset_variance()
                return

            t_end = self._timer.seconds()
            if t_end > self._estimate_clock.seconds():
                self._propagate_to(t_end)

            innov_pos, innov_att = self._innovations()
            dist_pos = float(np.linalg.norm(meas_pos - self.pos)) / math.sqrt(3 * innov_pos)
            dist_att = (attitude.inv() * self.att).magnitude() / math.sqrt(innov_att)
            should_reject = max(dist_pos, dist_att) > self.meas_reject_dist

            if should_reject and self.num_rejected_consecutively < MAX_NUM_CONSECUTIVE_REJECTION:
                self.num_rejected += 1
                self.num_rejected_consecutively += 1
            else:
                if self.num_rejected_consecutively >= MAX_NUM_CONSECUTIVE_REJECTION:
                    _log.warning("ESTIMATOR RESET!")
                    self.reset()
                    innov_pos, innov_att = self._innovations()
                self.num_rejected_consecutively = 0
                self._last_good_measurement.reset()

                gain_pos, self.variance_position = _kalman_step(self.variance_position, innov_pos)
                gain_att, self.variance_attitude = _kalman_step(self.variance_attitude, innov_att)

                err_pos = meas_pos - self.pos
                self.pos = self.pos + gain_pos[0] * err_pos
                self.vel = self.vel + gain_pos[1] * err_pos

                err_att = (self.att.inv() * attitude).as_rotvec()
                self.att = self.att * Rotation.from_rotvec(gain_att[0] * err_att)
                self.ang_vel = self.ang_vel + gain_att[1] * err_att

            self.variance_position = _symmetric(self.variance_position)
            self.variance_attitude = _symmetric(self.variance_attitude)

            self._prediction_pipe.clear_expired(self._estimate_clock.seconds())