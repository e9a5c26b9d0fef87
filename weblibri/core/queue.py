"""Bounded FIFO of conversion jobs: many producers, one consumer."""

import queue
from typing import Optional

from weblibri.core.logger import setup_logger
from weblibri.core.models import ConversionJob

logger = setup_logger(__name__)

DEFAULT_QUEUE_CAPACITY = 100


class JobQueue:
    """Thread-safe bounded channel between request handlers and the worker."""

    def __init__(self, capacity: int = DEFAULT_QUEUE_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Queue capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._queue: "queue.Queue[ConversionJob]" = queue.Queue(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def put(self, job: ConversionJob) -> bool:
        """Add a job without blocking. Returns False when the queue is full."""
        try:
            self._queue.put_nowait(job)
        except queue.Full:
            logger.warning(
                f"Conversion queue full ({self._capacity} jobs), dropping request for {job.destination_dir}"
            )
            return False
        logger.debug(f"Queued conversion {job.source_path} -> {job.destination_dir}")
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[ConversionJob]:
        """Block until a job is available.

        With ``timeout=None`` this waits forever. With a finite timeout it
        returns None once the timeout elapses without a job.
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()

    def empty(self) -> bool:
        return self._queue.empty()
