"""A queue of predictions that become active after a fixed delay."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Generic, Optional, Tuple, TypeVar

from .simulation_object import ManualClock, Timer

T = TypeVar("T")

_SMALL_TIME = 1e-6  # [s]
_NO_LATER_MESSAGE = 1e10  # [s]


@dataclass
class _TimedMessage(Generic[T]):
    time_active: float
    message: T


class PredictionPipe(Generic[T]):
    """Holds messages that take effect a fixed delay after they are added."""

    def __init__(self, clock: ManualClock, delay: float) -> None:
        self._timer = Timer(clock)
        self.delay = delay
        self._messages: Deque[_TimedMessage[T]] = deque()

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, message: T) -> None:
        """Queue a message sent now; it becomes active after the delay."""
        self._messages.append(
            _TimedMessage(self._timer.seconds() + self.delay, message)
        )

    def active_message(self, t: float) -> Optional[Tuple[T, float]]:
        """The newest message active at time ``t`` and how long it stays active.

        Returns ``None`` when no message is active at ``t``.
        """
        next_active = _NO_LATER_MESSAGE
        for timed in reversed(self._messages):
            if t + _SMALL_TIME >= timed.time_active:
                return timed.message, next_active - timed.time_active
            next_active = timed.time_active
        return None

    def clear_expired(self, current_time: float) -> None:
        """Drop messages superseded by a newer one active at ``current_time``.

        The last message always stays.
        """
        while len(self._messages) >= 2 and self._messages[1].time_active <= current_time:
            self._messages.popleft()