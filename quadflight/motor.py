"""A simulated motor and propeller producing thrust and torque in the body frame."""

from __future__ import annotations

import math
from enum import Enum

import numpy as np

from .simulation_object import ManualClock, SimulationObject


class PropellerHandedness(Enum):
    """Spin direction seen from above the propeller."""

    CLOCKWISE = 0
    COUNTERCLOCKWISE = 1


class Motor(SimulationObject):
    """A first-order motor; all vectors are in the body frame about the centre of mass."""

    def __init__(
        self,
        clock: ManualClock,
        position,
        rot_axis,
        handedness: PropellerHandedness,
        min_speed: float,
        max_speed: float,
        thrust_from_speed_sqr: float,
        torque_from_speed_sqr: float,
        time_const: float,
        inertia: float,
    ) -> None:
        super().__init__(clock)
        rot_axis = np.asarray(rot_axis, dtype=float)
        if thrust_from_speed_sqr < 0:
            raise ValueError("thrust coefficient must not be negative")
        if torque_from_speed_sqr < 0:
            raise ValueError("torque coefficient must not be negative")
        if not max_speed > min_speed:
            raise ValueError("maximum speed must exceed minimum speed")
        if abs(np.linalg.norm(rot_axis) - 1) >= 1e-6:
            raise ValueError("rotation axis must be a unit vector")

        self.min_speed = min_speed
        self.max_speed = max_speed
        self.thrust_from_speed_sqr = thrust_from_speed_sqr
        self.torque_from_speed_sqr = torque_from_speed_sqr
        self.time_constant = time_const
        self.inertia = inertia
        self.speed = 0.0
        self.speed_command = 0.0
        self.position = np.asarray(position, dtype=float)
        self.rot_axis = rot_axis
        self.thrust_axis = rot_axis if handedness is PropellerHandedness.CLOCKWISE else -rot_axis
        self.force = np.zeros(3)
        self.torque = np.zeros(3)
        self.angular_momentum = np.zeros(3)
        self.power_consumption = 0.0

    def run(self) -> None:
        dt = self._integration_timer.seconds()
        if dt < 1e-6:
            return
        self._integration_timer.reset()

        old_speed = self.speed
        if self.speed_command < 0:
            self.speed_command = 0.0

        c = 0.0 if self.time_constant == 0 else math.exp(-dt / self.time_constant)
        self.speed = c * self.speed + (1 - c) * self.speed_command
        self.speed = min(max(self.speed, self.min_speed), self.max_speed)

        self.angular_momentum = self.speed * self.inertia * self.rot_axis
        speed_sqr = self.speed * abs(self.speed)
        self.force = self.thrust_from_speed_sqr * speed_sqr * self.thrust_axis

        torque = -self.torque_from_speed_sqr * speed_sqr * self.rot_axis
        torque = torque + np.cross(self.position, self.force)
        angular_acceleration = (self.speed - old_speed) / dt
        self.torque = torque - angular_acceleration * self.inertia * self.rot_axis

        self.power_consumption = self.speed * float(np.linalg.norm(self.torque))