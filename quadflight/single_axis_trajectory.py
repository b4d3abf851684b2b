"""Minimum-jerk trajectory along a single spatial axis."""

from __future__ import annotations

import math
import sys
from typing import Optional, Tuple


class SingleAxisTrajectory:
    """A jerk-optimal polynomial trajectory in one axis.

    The trajectory starts from a fixed position, velocity and acceleration at
    time zero. Any combination of the final position, velocity and acceleration
    may be fixed; components left unset are free. The jerk is
    ``gamma + beta*t + alpha*t**2/2``.
    """

    def __init__(self) -> None:
        self.initial_position = 0.0
        self.initial_velocity = 0.0
        self.initial_acceleration = 0.0
        self.goal_position: Optional[float] = None
        self.goal_velocity: Optional[float] = None
        self.goal_acceleration: Optional[float] = None
        self.alpha = 0.0
        self.beta = 0.0
        self.gamma = 0.0
        self.cost = sys.float_info.max
        self._acc_peak_times: Optional[Tuple[float, float]] = None

    def set_initial_state(self, pos0: float, vel0: float, acc0: float) -> None:
        """Set the state at time zero; this also clears the goal constraints."""
        self.initial_position = pos0
        self.initial_velocity = vel0
        self.initial_acceleration = acc0
        self.reset()

    def set_goal_position(self, pos: float) -> None:
        """Fix the position at the end time."""
        self.goal_position = pos

    def set_goal_velocity(self, vel: float) -> None:
        """Fix the velocity at the end time."""
        self.goal_velocity = vel

    def set_goal_acceleration(self, acc: float) -> None:
        """Fix the acceleration at the end time."""
        self.goal_acceleration = acc

    def reset(self) -> None:
        """Clear the goal constraints and the cost; the initial state is kept."""
        self.goal_position = None
        self.goal_velocity = None
        self.goal_acceleration = None
        self.cost = sys.float_info.max
        self._acc_peak_times = None

    def generate(self, duration: float) -> None:
        """Solve, in closed form, for the optimal trajectory lasting ``duration`` seconds."""
        if duration == 0:
            raise ValueError("trajectory duration must not be zero")
        tf = duration
        p0, v0, a0 = self.initial_position, self.initial_velocity, self.initial_acceleration
        pos_defined = self.goal_position is not None
        vel_defined = self.goal_velocity is not None
        acc_defined = self.goal_acceleration is not None
        pf = self.goal_position if pos_defined else 0.0
        vf = self.goal_velocity if vel_defined else 0.0
        af = self.goal_acceleration if acc_defined else 0.0

        delta_a = af - a0
        delta_v = vf - v0 - a0 * tf
        delta_p = pf - p0 - v0 * tf - 0.5 * a0 * tf * tf

        t2 = tf * tf
        t3 = t2 * tf
        t4 = t3 * tf
        t5 = t4 * tf

        if pos_defined and vel_defined and acc_defined:
            a = (60 * t2 * delta_a - 360 * tf * delta_v + 720 * delta_p) / t5
            b = (-24 * t3 * delta_a + 168 * t2 * delta_v - 360 * tf * delta_p) / t5
            g = (3 * t4 * delta_a - 24 * t3 * delta_v + 60 * t2 * delta_p) / t5
        elif pos_defined and vel_defined:
            a = (-120 * tf * delta_v + 320 * delta_p) / t5
            b = (72 * t2 * delta_v - 200 * tf * delta_p) / t5
            g = (-12 * t3 * delta_v + 40 * t2 * delta_p) / t5
        elif pos_defined and acc_defined:
            a = (-15 * t2 * delta_a + 90 * delta_p) / (2 * t5)
            b = (15 * t3 * delta_a - 90 * tf * delta_p) / (2 * t5)
            g = (-3 * t4 * delta_a + 30 * t2 * delta_p) / (2 * t5)
        elif vel_defined and acc_defined:
            a = 0.0
            b = (6 * tf * delta_a - 12 * delta_v) / t3
            g = (-2 * t2 * delta_a + 6 * tf * delta_v) / t3
        elif pos_defined:
            a = 20 * delta_p / t5
            b = -20 * delta_p / t4
            g = 10 * delta_p / t3
        elif vel_defined:
            a = 0.0
            b = -3 * delta_v / t3
            g = 3 * delta_v / t2
        elif acc_defined:
            a = 0.0
            b = 0.0
            g = delta_a / tf
        else:
            a = b = g = 0.0

        self.alpha, self.beta, self.gamma = a, b, g
        self._acc_peak_times = None
        self.cost = (
            g * g
            + b * g * tf
            + b * b * t2 / 3.0
            + a * g * t2 / 3.0
            + a * b * t3 / 4.0
            + a * a * t4 / 20.0
        )

    def jerk(self, t: float) -> float:
        """Jerk at time ``t``."""
        return self.gamma + self.beta * t + 0.5 * self.alpha * t * t

    def acceleration(self, t: float) -> float:
        """Acceleration at time ``t``."""
        return (
            self.initial_acceleration
            + self.gamma * t
            + self.beta * t * t / 2.0
            + self.alpha * t ** 3 / 6.0
        )

    def velocity(self, t: float) -> float:
        """Velocity at time ``t``."""
        return (
            self.initial_velocity
            + self.initial_acceleration * t
            + self.gamma * t * t / 2.0
            + self.beta * t ** 3 / 6.0
            + self.alpha * t ** 4 / 24.0
        )

    def position(self, t: float) -> float:
        """Position at time ``t``."""
        return (
            self.initial_position
            + self.initial_velocity * t
            + self.initial_acceleration * t * t / 2.0
            + self.gamma * t ** 3 / 6.0
            + self.beta * t ** 4 / 24.0
            + self.alpha * t ** 5 / 120.0
        )

    def _peak_times(self) -> Tuple[float, float]:
        if self._acc_peak_times is None:
            a, b, g = self.alpha, self.beta, self.gamma
            if a:
                det = b * b - 2 * g * a
                if det < 0:
                    peaks = (0.0, 0.0)
                else:
                    root = math.sqrt(det)
                    peaks = ((-b + root) / a, (-b - root) / a)
            elif b:
                peaks = (-g / b, 0.0)
            else:
                peaks = (0.0, 0.0)
            self._acc_peak_times = peaks
        return self._acc_peak_times

    def min_max_acceleration(self, t1: float, t2: float) -> Tuple[float, float]:
        """The smallest and largest acceleration over ``[t1, t2]``."""
        values = [self.acceleration(t1), self.acceleration(t2)]
        values.extend(self.acceleration(t) for t in self._peak_times() if t1 < t < t2)
        return min(values), max(values)

    def max_jerk_squared(self, t1: float, t2: float) -> float:
        """The largest squared jerk over ``[t1, t2]``."""
        result = max(self.jerk(t1) ** 2, self.jerk(t2) ** 2)
        if self.alpha:
            t_max = -self.beta / self.alpha
            if t1 < t_max < t2:
                result = max(self.jerk(t_max) ** 2, result)
        return result