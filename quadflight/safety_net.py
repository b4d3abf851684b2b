"""Simple rules that flag unsafe flight situations."""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .estimated_state import EstimatedState


@dataclass
class SafetyState:
    """Which safety rules are currently violated."""

    vehicle_not_seen: bool = True
    unsafe_position: bool = False
    upside_down_and_low: bool = False
    user_unsafe: bool = False

    def is_safe(self) -> bool:
        """Whether no rule is violated."""
        return not (
            self.vehicle_not_seen
            or self.unsafe_position
            or self.upside_down_and_low
            or self.user_unsafe
        )


class SafetyNet:
    """Checks estimates against a safe flight box, visibility and orientation."""

    def __init__(self) -> None:
        self._state = SafetyState()
        self.min_corner = np.array([-2.4, -3.1, -0.5])
        self.max_corner = np.array([1.8, 3.1, 4.5])
        self.min_normal_height = 1.0
        self.vehicle_not_seen_timeout = 0.5

    @property
    def state(self) -> SafetyState:
        """A copy of the current safety state."""
        return replace(self._state)

    def set_safe_corners(self, min_corner, max_corner, min_normal_height: float) -> None:
        """Set the safe flight box and the height below which the vehicle must point up."""
        min_corner = np.asarray(min_corner, dtype=float)
        max_corner = np.asarray(max_corner, dtype=float)
        if not np.all(min_corner < max_corner):
            raise ValueError("every component of the minimum corner must be below the maximum")
        self.min_corner = min_corner
        self.max_corner = max_corner
        self.min_normal_height = min_normal_height

    def update(self, estimate: EstimatedState, time_since_last_good_measurement: float) -> None:
        """Re-evaluate the rules for a new estimate."""
        self._state.vehicle_not_seen = (
            time_since_last_good_measurement > self.vehicle_not_seen_timeout
        )
        pos = np.asarray(estimate.pos, dtype=float)
        self._state.unsafe_position = bool(
            np.any(pos < self.min_corner) or np.any(pos > self.max_corner)
        )
        self._state.upside_down_and_low = bool(
            pos[2] < self.min_normal_height and estimate.att.apply([0.0, 0.0, 1.0])[2] < 0
        )

    def is_safe(self) -> bool:
        """Whether the vehicle is currently considered safe."""
        return self._state.is_safe()

    def set_unsafe(self) -> None:
        """Flag the vehicle unsafe at the user's request; this stays set."""
        self._state.user_unsafe = True

    def status(self) -> str:
        """A human-readable summary of the safety state."""
        if self._state.is_safe():
            return "all OK"
        parts = ["Not safe: "]
        if self._state.unsafe_position:
            parts.append("(unsafe position) ")
        if self._state.vehicle_not_seen:
            parts.append("(not seen) ")
        if self._state.user_unsafe:
            parts.append("(user triggered) ")
        if self._state.upside_down_and_low:
            parts.append("(upside down and low) ")
        return "".join(parts)