"""Process-wide update sequence shared by all resolution workers."""

import threading


class UpdateIDCounter:
    """Monotonic counter stamped on every token metadata mutation.

    Gives downstream consumers a total order over changes. Safe to call from
    concurrent workers: every call returns a value no other call has seen.

    Example:
        counter = UpdateIDCounter(start=await repo.get_max_update_id())
        token.update_id = counter.increment()
    """

    def __init__(self, start: int = 0):
        """Initialize counter.

        Args:
            start: Last value already handed out (e.g. highest persisted update_id)
        """
        if start < 0:
            raise ValueError("start must be non-negative")
        self._value = start
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        """Last value returned by increment() (or the seed)."""
        with self._lock:
            return self._value

    def increment(self) -> int:
        """Advance the counter and return the new value."""
        with self._lock:
            self._value += 1
            return self._value
