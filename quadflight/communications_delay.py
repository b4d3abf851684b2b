"""A first-in first-out channel that delivers messages after a fixed delay."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Generic, TypeVar

from .simulation_object import ManualClock, Timer

T = TypeVar("T")


@dataclass
class _TimedMessage(Generic[T]):
    time_to_send: float
    message: T


class CommunicationsDelay(Generic[T]):
    """Simulates a link with constant latency."""

    def __init__(self, clock: ManualClock, delay: float) -> None:
        self._timer = Timer(clock)
        self.delay_us = int(delay * 1e6)
        self._messages: Deque[_TimedMessage[T]] = deque()

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, message: T) -> None:
        """Send a message now; it arrives after the delay."""
        self._messages.append(
            _TimedMessage(self._timer.microseconds() + self.delay_us, message)
        )

    def has_message(self) -> bool:
        """Whether the oldest queued message has arrived."""
        if not self._messages:
            return False
        return self._timer.microseconds() >= self._messages[0].time_to_send

    def pop(self) -> T:
        """Remove and return the oldest queued message."""
        if not self._messages:
            raise IndexError("no message in the channel")
        return self._messages.popleft().message