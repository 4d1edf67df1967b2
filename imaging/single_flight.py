"""
Single-flight registry: at most one in-progress computation per key.
"""

import threading
from concurrent.futures import Future


class SingleFlight:
    """
    Collapse concurrent calls for the same key into one computation.

    The first caller for a key runs the function; callers arriving while it
    runs wait for the same result (or exception). Nothing is memoized once
    the call finishes, so a failed computation is retried by the next caller.

    Usage:
        flights = SingleFlight()
        data = flights.do(key, lambda: expensive(key))
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls = {}

    def do(self, key, fn, *args, **kwargs):
        """Run fn(*args, **kwargs) once per concurrent key; return its result."""
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            return future.result()

        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        finally:
            with self._lock:
                del self._calls[key]
        return future.result()

    def in_flight(self):
        """Number of keys currently being computed."""
        with self._lock:
            return len(self._calls)
