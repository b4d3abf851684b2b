"""Rapid generation and feasibility testing of quadrocopter trajectories."""

from __future__ import annotations

import math
import sys
from enum import Enum
from typing import Iterable, List, Tuple

import numpy as np

from .single_axis_trajectory import SingleAxisTrajectory


class InputFeasibility(Enum):
    """Outcome of the input (thrust and body rate) feasibility test."""

    FEASIBLE = 0
    INDETERMINABLE = 1
    INFEASIBLE_THRUST_HIGH = 2
    INFEASIBLE_THRUST_LOW = 3
    INFEASIBLE_RATES = 4

    @property
    def label(self) -> str:
        """A short human-readable name of the result."""
        return _INPUT_LABELS[self]


_INPUT_LABELS = {
    InputFeasibility.FEASIBLE: "Feasible",
    InputFeasibility.INDETERMINABLE: "Indeterminable",
    InputFeasibility.INFEASIBLE_THRUST_HIGH: "InfeasibleThrustHigh",
    InputFeasibility.INFEASIBLE_THRUST_LOW: "InfeasibleThrustLow",
    InputFeasibility.INFEASIBLE_RATES: "InfeasibleRates",
}


class StateFeasibility(Enum):
    """Outcome of a state (position or velocity) feasibility test."""

    FEASIBLE = 0
    INFEASIBLE = 1


def _real_roots(coeffs: Iterable[float]) -> List[float]:
    """Real roots of a polynomial given with the highest power first."""
    roots = np.roots(np.asarray(list(coeffs), dtype=float))
    return [
        float(r.real)
        for r in roots
        if abs(r.imag) <= 1e-7 * max(1.0, abs(r.real))
    ]


class RapidTrajectoryGenerator:
    """A jerk-optimal state interception trajectory for a quadrocopter.

    The trajectory starts from a given position, velocity and acceleration and
    lasts a fixed time. Any combination of the final position, velocity and
    acceleration components may be fixed. ``gravity`` is the gravity vector in
    the planning frame.
    """

    def __init__(self, x0, v0, a0, gravity) -> None:
        self.axes: Tuple[SingleAxisTrajectory, ...] = tuple(
            SingleAxisTrajectory() for _ in range(3)
        )
        self.final_time = 0.0
        x0, v0, a0 = (np.asarray(v, dtype=float) for v in (x0, v0, a0))
        for axis, p, v, a in zip(self.axes, x0, v0, a0):
            axis.set_initial_state(float(p), float(v), float(a))
        self.gravity = np.asarray(gravity, dtype=float)

    def set_goal_position(self, position) -> None:
        """Fix the full position at the end time."""
        for i, value in enumerate(np.asarray(position, dtype=float)):
            self.set_goal_position_in_axis(i, float(value))

    def set_goal_velocity(self, velocity) -> None:
        """Fix the full velocity at the end time."""
        for i, value in enumerate(np.asarray(velocity, dtype=float)):
            self.set_goal_velocity_in_axis(i, float(value))

    def set_goal_acceleration(self, acceleration) -> None:
        """Fix the full acceleration at the end time."""
        for i, value in enumerate(np.asarray(acceleration, dtype=float)):
            self.set_goal_acceleration_in_axis(i, float(value))

    def set_goal_position_in_axis(self, axis: int, value: float) -> None:
        """Fix the end position in one axis."""
        self.axes[axis].set_goal_position(value)

    def set_goal_velocity_in_axis(self, axis: int, value: float) -> None:
        """Fix the end velocity in one axis."""
        self.axes[axis].set_goal_velocity(value)

    def set_goal_acceleration_in_axis(self, axis: int, value: float) -> None:
        """Fix the end acceleration in one axis."""
        self.axes[axis].set_goal_acceleration(value)

    def reset(self) -> None:
        """Clear all end-state constraints."""
        for axis in self.axes:
            axis.reset()
        self.final_time = 0.0

    def generate(self, duration: float) -> None:
        """Compute the optimal trajectory lasting ``duration`` seconds."""
        self.final_time = duration
        for axis in self.axes:
            axis.generate(duration)

    def _check_input_section(
        self,
        fmin_allowed: float,
        fmax_allowed: float,
        wmax_allowed: float,
        t1: float,
        t2: float,
        min_time_section: float,
    ) -> InputFeasibility:
        if t2 - t1 < min_time_section:
            return InputFeasibility.INDETERMINABLE
        f1, f2 = self.thrust(t1), self.thrust(t2)
        if max(f1, f2) > fmax_allowed:
            return InputFeasibility.INFEASIBLE_THRUST_HIGH
        if min(f1, f2) < fmin_allowed:
            return InputFeasibility.INFEASIBLE_THRUST_LOW

        fmin_sqr = 0.0
        fmax_sqr = 0.0
        jmax_sqr = 0.0
        for axis, g in zip(self.axes, self.gravity):
            amin, amax = axis.min_max_acceleration(t1, t2)
            v1 = amin - g
            v2 = amax - g
            if max(v1 * v1, v2 * v2) > fmax_allowed * fmax_allowed:
                return InputFeasibility.INFEASIBLE_THRUST_HIGH
            if v1 * v2 >= 0:
                fmin_sqr += min(abs(v1), abs(v2)) ** 2
            fmax_sqr += max(abs(v1), abs(v2)) ** 2
            jmax_sqr += axis.max_jerk_squared(t1, t2)

        fmin = math.sqrt(fmin_sqr)
        fmax = math.sqrt(fmax_sqr)
        w_bound = math.sqrt(jmax_sqr / fmin_sqr) if fmin_sqr > 1e-6 else sys.float_info.max

        if fmax < fmin_allowed:
            return InputFeasibility.INFEASIBLE_THRUST_LOW
        if fmin > fmax_allowed:
            return InputFeasibility.INFEASIBLE_THRUST_HIGH

        if fmin < fmin_allowed or fmax > fmax_allowed or w_bound > wmax_allowed:
            t_half = (t1 + t2) / 2
            first = self._check_input_section(
                fmin_allowed, fmax_allowed, wmax_allowed, t1, t_half, min_time_section
            )
            if first is InputFeasibility.FEASIBLE:
                return self._check_input_section(
                    fmin_allowed, fmax_allowed, wmax_allowed, t_half, t2, min_time_section
                )
            return first

        return InputFeasibility.FEASIBLE

    def check_input_feasibility(
        self,
        fmin_allowed: float,
        fmax_allowed: float,
        wmax_allowed: float,
        min_time_section: float,
    ) -> InputFeasibility:
        """Test whether thrust and body rates stay within limits along the trajectory.

        The result of an infeasible or indeterminate test is that of the first
        section that failed.
        """
        return self._check_input_section(
            fmin_allowed, fmax_allowed, wmax_allowed, 0.0, self.final_time, min_time_section
        )

    def check_position_feasibility(self, boundary_point, boundary_normal) -> StateFeasibility:
        """Test whether the trajectory stays strictly on the normal's side of a plane."""
        point = np.asarray(boundary_point, dtype=float)
        normal = np.asarray(boundary_normal, dtype=float)
        normal = normal / np.linalg.norm(normal)

        c = [0.0] * 5
        for n, axis in zip(normal, self.axes):
            c[0] += n * axis.alpha / 24.0
            c[1] += n * axis.beta / 6.0
            c[2] += n * axis.gamma / 2.0
            c[3] += n * axis.initial_acceleration
            c[4] += n * axis.initial_velocity

        roots = _real_roots(c) if abs(c[0]) > 1e-6 else _real_roots(c[1:])
        tf = self.final_time
        for t in [0.0, tf, *roots]:
            if t < 0 or t > tf:
                continue
            if float(np.dot(self.position(t) - point, normal)) <= 0:
                return StateFeasibility.INFEASIBLE
        return StateFeasibility.FEASIBLE

    def check_velocity_feasibility(self, vmax: float) -> StateFeasibility:
        """Test whether every velocity component stays below ``vmax`` in magnitude.

        An axis whose velocity is not cubic in its acceleration roots is reported
        infeasible.
        """
        tf = self.final_time
        for axis in self.axes:
            c = [
                axis.alpha / 6.0,
                axis.beta / 2.0,
                axis.gamma,
                axis.initial_acceleration,
            ]
            if abs(c[0]) <= 1e-6:
                return StateFeasibility.INFEASIBLE
            for t in [*_real_roots(c), 0.0, tf]:
                if t < 0 or t > tf:
                    continue
                if np.any(np.abs(self.velocity(t)) >= vmax):
                    return StateFeasibility.INFEASIBLE
        return StateFeasibility.FEASIBLE

    def jerk(self, t: float) -> np.ndarray:
        """Jerk at time ``t``."""
        return np.array([axis.jerk(t) for axis in self.axes])

    def acceleration(self, t: float) -> np.ndarray:
        """Acceleration at time ``t``."""
        return np.array([axis.acceleration(t) for axis in self.axes])

    def velocity(self, t: float) -> np.ndarray:
        """Velocity at time ``t``."""
        return np.array([axis.velocity(t) for axis in self.axes])

    def position(self, t: float) -> np.ndarray:
        """Position at time ``t``."""
        return np.array([axis.position(t) for axis in self.axes])

    def normal_vector(self, t: float) -> np.ndarray:
        """Unit thrust direction at time ``t``."""
        f = self.acceleration(t) - self.gravity
        return f / np.linalg.norm(f)

    def thrust(self, t: float) -> float:
        """Mass-normalised thrust at time ``t``."""
        return float(np.linalg.norm(self.acceleration(t) - self.gravity))

    def omega(self, t: float, time_step: float) -> np.ndarray:
        """Body rates, in the planning frame, that turn the normal from ``t`` to ``t + time_step``."""
        n0 = self.normal_vector(t)
        n1 = self.normal_vector(t + time_step)
        cross = np.cross(n0, n1)
        norm = float(np.linalg.norm(cross))
        if not norm > 1e-6:
            return np.zeros(3)
        try:
            rate = math.acos(float(np.dot(n0, n1))) / time_step
        except ValueError:
            return np.zeros(3)
        return rate * (cross / norm)

    def cost(self) -> float:
        """Total cost of the trajectory, summed over the axes."""
        return sum(axis.cost for axis in self.axes)