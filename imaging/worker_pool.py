"""
Bounded worker pool for CPU-bound image transforms.

Keeps decode/resize/encode work off request-dispatch threads and rejects
new work immediately once the pool and its queue are full.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from imaging.errors import WorkerPoolSaturated


class WorkerPool:
    """Thread pool with admission control.

    At most max_workers jobs run at once and at most max_pending more wait
    in the queue. A submission beyond that raises WorkerPoolSaturated rather
    than blocking the caller.

    max_workers=0 runs every job inline on the calling thread with no limit.
    """

    def __init__(self, max_workers=4, max_pending=64):
        if max_workers < 0 or max_pending < 0:
            raise ValueError("max_workers and max_pending must be >= 0")
        self.max_workers = max_workers
        self.max_pending = max_pending
        self._executor = None
        self._slots = None
        if max_workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix='image-worker')
            self._slots = threading.BoundedSemaphore(max_workers + max_pending)
        self._metrics_lock = threading.Lock()
        self.metrics = {'submitted': 0, 'rejected': 0}

    def run(self, fn, *args, **kwargs):
        """Run fn on a worker thread and block until it returns.

        Raises:
            WorkerPoolSaturated: If all worker and queue slots are taken
        """
        if self._executor is None:
            self._count('submitted')
            return fn(*args, **kwargs)

        if not self._slots.acquire(blocking=False):
            self._count('rejected')
            raise WorkerPoolSaturated(
                f"Worker pool saturated ({self.max_workers} running, {self.max_pending} queued)")
        try:
            future = self._executor.submit(self._run_and_release, fn, args, kwargs)
        except BaseException:
            self._slots.release()
            raise
        self._count('submitted')
        return future.result()

    def _run_and_release(self, fn, args, kwargs):
        # Free the slot before the result is published to the waiting caller
        try:
            return fn(*args, **kwargs)
        finally:
            self._slots.release()

    def _count(self, name):
        with self._metrics_lock:
            self.metrics[name] += 1

    def get_metrics(self):
        """Get submission counters (thread-safe)."""
        with self._metrics_lock:
            return self.metrics.copy()

    def shutdown(self, wait=True):
        """Stop accepting work and release the worker threads."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
