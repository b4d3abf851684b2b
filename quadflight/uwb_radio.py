"""A single simulated ultra-wideband ranging radio."""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .simulation_object import ManualClock, SimulationObject


@dataclass
class RangingMeasurement:
    """The outcome of one ranging transaction."""

    have_new: bool = False
    range: float = 0.0
    responder_id: int = 0
    failure: bool = False


class UWBRadio(SimulationObject):
    """A radio with an id, a true position and the latest measurement it heard."""

    def __init__(self, clock: ManualClock, radio_id: int) -> None:
        super().__init__(clock)
        self.id = radio_id
        self.next_ranging_target = 0
        self.position = np.zeros(3)
        self._measurement = RangingMeasurement()

    def run(self) -> None:
        """Radios have no dynamics of their own."""

    def set_measurement(self, measurement: RangingMeasurement) -> None:
        """Store a measurement, marking it as new."""
        self._measurement = replace(measurement, have_new=True)

    def has_new_measurement(self) -> bool:
        """Whether an unread measurement is waiting."""
        return self._measurement.have_new

    def take_measurement(self) -> RangingMeasurement:
        """Return the latest measurement and mark it as read."""
        out = replace(self._measurement)
        self._measurement.have_new = False
        return out