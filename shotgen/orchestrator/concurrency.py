"""Concurrency gate bounding in-flight backend calls."""

import threading


class ConcurrencyGate:
    """Counting semaphore used as a context manager.

    ``with gate:`` holds one slot for the body of the block and always
    releases it, including when the body raises. The gate also tracks how many
    slots are held and the peak reached, for logging and tests.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"concurrency limit must be at least 1, got {limit}")
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(limit)
        self._counter_lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    @property
    def in_flight(self) -> int:
        with self._counter_lock:
            return self._in_flight

    @property
    def peak(self) -> int:
        with self._counter_lock:
            return self._peak

    def __enter__(self) -> "ConcurrencyGate":
        self._semaphore.acquire()
        with self._counter_lock:
            self._in_flight += 1
            self._peak = max(self._peak, self._in_flight)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        with self._counter_lock:
            self._in_flight -= 1
        self._semaphore.release()
        return False
