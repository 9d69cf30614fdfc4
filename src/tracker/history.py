"""Bounded in-memory retention of recent change batches."""

import threading
from collections import deque
from typing import Deque, Tuple

from .models import ChangeBatch

DEFAULT_CAPACITY = 100


class HistoryBuffer:
    """
    Thread-safe, fixed-capacity history of change batches.

    Batches are kept in arrival order. When full, the oldest batch is
    dropped before the newest is appended.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1: {capacity}")
        self._batches: Deque[ChangeBatch] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._batches.maxlen

    def push(self, batch: ChangeBatch) -> None:
        """Append a batch, evicting the oldest one if the buffer is full."""
        with self._lock:
            self._batches.append(batch)

    def snapshot_view(self) -> Tuple[ChangeBatch, ...]:
        """Return an immutable copy of the retained batches, oldest first."""
        with self._lock:
            return tuple(self._batches)

    def __len__(self) -> int:
        with self._lock:
            return len(self._batches)
