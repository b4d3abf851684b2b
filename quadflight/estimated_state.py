"""The state of a vehicle as produced by an estimator."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from scipy.spatial.transform import Rotation


def _vector(values=(0.0, 0.0, 0.0)) -> np.ndarray:
    """A float copy of a three-vector, zero by default."""
    return np.array(values, dtype=float)


@dataclass
class EstimatedState:
    """Position, velocity, attitude and angular velocity of a vehicle.

    The attitude maps body-frame vectors into the world frame.
    """

    pos: np.ndarray = field(default_factory=_vector)
    vel: np.ndarray = field(default_factory=_vector)
    att: Rotation = field(default_factory=Rotation.identity)
    ang_vel: np.ndarray = field(default_factory=_vector)

    def copy(self) -> "EstimatedState":
        """An independent copy of this state."""
        return EstimatedState(
            _vector(self.pos),
            _vector(self.vel),
            Rotation.from_quat(self.att.as_quat()),
            _vector(self.ang_vel),
        )