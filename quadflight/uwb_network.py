"""A network of simulated UWB radios that range against each other."""

from __future__ import annotations

import random
from typing import List, Optional

import numpy as np

from .simulation_object import ManualClock, SimulationObject, Timer
from .uwb_radio import RangingMeasurement, UWBRadio


class UWBNetwork(SimulationObject):
    """Runs ranging transactions between radios, one at a time.

    A transaction is started by the first radio that has a ranging target and
    completed one communication period later, when every radio hears the result.
    """

    def __init__(
        self,
        clock: ManualClock,
        communication_period: float,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(clock)
        self.communication_period = communication_period
        self._time_since_last_range = Timer(clock)
        self._requester = 0
        self._responder = 0
        self.noise_std_dev = 0.0
        self.outlier_probability = 0.0
        self.outlier_std_dev = 0.0
        self._rng = rng if rng is not None else random.Random(0)
        self.radios: List[UWBRadio] = []

    def add_radio(self, radio: UWBRadio) -> None:
        """Add a radio to the network."""
        self.radios.append(radio)

    def set_noise(
        self, noise_std_dev: float, outlier_probability: float, outlier_std_dev: float
    ) -> None:
        """Set the measurement noise and the outlier model."""
        self.noise_std_dev = noise_std_dev
        self.outlier_probability = outlier_probability
        self.outlier_std_dev = outlier_std_dev

    def run(self) -> None:
        for radio in self.radios:
            radio.run()

        if self._time_since_last_range.seconds() < self.communication_period:
            return

        if not self._requester or not self._responder:
            initiator = next((r for r in self.radios if r.next_ranging_target), None)
            if initiator is not None:
                self._requester = initiator.id
                self._responder = initiator.next_ranging_target
            self._time_since_last_range.reset()
            return

        requester = next((r for r in self.radios if r.id == self._requester), None)
        responder = next((r for r in self.radios if r.id == self._responder), None)
        if requester is None or responder is None:
            raise RuntimeError(
                f"ranging between radios {self._requester} and {self._responder}, "
                "but one of them is not in the network"
            )

        if self._rng.random() < self.outlier_probability:
            distance = self._rng.gauss(0.0, 1.0) * self.outlier_std_dev
        else:
            noise = self._rng.gauss(0.0, 1.0) * self.noise_std_dev
            distance = float(np.linalg.norm(requester.position - responder.position)) + noise

        measurement = RangingMeasurement(
            have_new=True, range=distance, responder_id=self._responder, failure=False
        )
        for radio in self.radios:
            radio.set_measurement(measurement)

        self._requester = 0
        self._responder = 0