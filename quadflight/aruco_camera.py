"""A simulated marker-tracking camera producing pose measurements at a fixed rate."""

from __future__ import annotations

from scipy.spatial.transform import Rotation

from .estimated_state import _vector
from .simulation_object import ManualClock, SimulationObject


class ArucoCamera(SimulationObject):
    """Reports its own pose as a measurement every ``fake_run_time`` seconds."""

    def __init__(self, clock: ManualClock, fake_run_time: float) -> None:
        super().__init__(clock)
        self.fake_run_time = fake_run_time
        self.position, self.position_measurement = _vector(), _vector()
        self.attitude = self.attitude_measurement = Rotation.identity()
        self.is_new_measurement = False

    def run(self) -> None:
        self.is_new_measurement = self._integration_timer.seconds() >= self.fake_run_time
        if self.is_new_measurement:
            self._integration_timer.reset()
            self.position_measurement = _vector(self.position)
            self.attitude_measurement = self.attitude