"""Simulated clocks, elapsed-time timers and the base class of simulated objects."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ManualClock:
    """A clock that only moves when told to, counting whole microseconds."""

    microseconds: int = 0

    def advance_microseconds(self, microseconds: int) -> None:
        """Move the clock forward by the given number of microseconds."""
        if microseconds < 0:
            raise ValueError("a clock cannot be moved backwards")
        self.microseconds += int(microseconds)

    def reset_microseconds(self, microseconds: int) -> None:
        """Set the clock to an absolute number of microseconds."""
        self.microseconds = int(microseconds)

    def seconds(self) -> float:
        """The clock's time in seconds."""
        return self.microseconds / 1e6


class Timer:
    """Measures the time elapsed on a clock since the timer was last reset."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self._start: float = clock.microseconds

    def microseconds(self) -> float:
        """Elapsed time in microseconds."""
        return self.clock.microseconds - self._start

    def seconds(self) -> float:
        """Elapsed time in seconds."""
        return self.microseconds() / 1e6

    def reset(self) -> None:
        """Start measuring again from now."""
        self._start = self.clock.microseconds

    def adjust_seconds(self, seconds: float) -> None:
        """Add the given number of seconds (possibly negative) to the elapsed time."""
        self._start -= seconds * 1e6


class SimulationObject(ABC):
    """Base class of every object that the simulator steps forward in time."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self._integration_timer = Timer(clock)

    @abstractmethod
    def run(self) -> None:
        """Advance the object to the clock's current time."""