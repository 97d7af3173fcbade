"""Event records and the time-ordered event queue."""

from __future__ import annotations

import heapq
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class EventKind(Enum):
    UPDATE = "update"
    SIGNAL = "signal"
    MEASUREMENT = "measurement"


@dataclass(frozen=True)
class Event:
    """A scheduled occurrence at ``node_id``.

    ``source_node`` is only meaningful for :attr:`EventKind.SIGNAL` events and
    is ``-1`` otherwise.
    """

    time: float
    node_id: int
    kind: EventKind = EventKind.UPDATE
    source_node: int = -1


class EventQueue:
    """Min-heap of events keyed by ``(time, seq)``.

    ``seq`` increases with every push so that events sharing a timestamp are
    returned in insertion order. Duplicate events are allowed.
    """

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, Event]] = []
        self._seq = 0

    def push(self, event: Event) -> None:
        """Insert ``event`` into the queue."""

        heapq.heappush(self._heap, (event.time, self._seq, event))
        self._seq += 1

    def pop(self) -> Event:
        """Remove and return the earliest event."""

        if not self._heap:
            raise IndexError("pop from empty event queue")
        return heapq.heappop(self._heap)[2]

    def peek_time(self) -> float:
        """Return the time of the next event without removing it."""

        if not self._heap:
            raise IndexError("peek from empty event queue")
        return self._heap[0][0]

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._heap)

    def __bool__(self) -> bool:  # pragma: no cover - trivial
        return bool(self._heap)

    def clear(self) -> None:
        """Drop all scheduled events."""

        self._heap.clear()
        self._seq = 0


__all__ = ["Event", "EventKind", "EventQueue"]
