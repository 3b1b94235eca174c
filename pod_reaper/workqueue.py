"""De-duplicating work queue with delayed adds."""

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, Hashable, List, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    Thread-safe queue of object keys for reconciliation workers.

    A key is queued at most once and handed to at most one worker at a time.
    A key added while it is being processed is queued again once the worker
    calls done().
    """

    def __init__(self, name: str = ""):
        """
        Initialize the queue.

        Args:
            name: Name used in log messages
        """
        self.name = name
        self._cond = threading.Condition(threading.Lock())
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._waiting: List[Tuple[float, int, Hashable]] = []
        self._deadlines: Dict[Hashable, float] = {}
        self._counter = itertools.count()
        self._shutting_down = False

    def add(self, key: Hashable) -> None:
        """Queue a key for processing."""
        with self._cond:
            self._add(key)

    def _add(self, key: Hashable) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add_after(self, key: Hashable, delay: Union[timedelta, float]) -> None:
        """
        Queue a key once a delay has elapsed.

        If the key is already waiting, the earlier deadline wins.

        Args:
            key: Key to queue
            delay: timedelta or seconds
        """
        seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)

        with self._cond:
            if self._shutting_down:
                return
            if seconds <= 0:
                self._add(key)
                return

            deadline = time.monotonic() + seconds
            current = self._deadlines.get(key)
            if current is not None and current <= deadline:
                return

            self._deadlines[key] = deadline
            heapq.heappush(self._waiting, (deadline, next(self._counter), key))
            self._cond.notify_all()

    def _promote_ready(self) -> Optional[float]:
        """Queue waiting keys whose deadline has passed. Returns seconds until the next deadline."""
        now = time.monotonic()
        while self._waiting:
            deadline, _, key = self._waiting[0]
            if self._deadlines.get(key) != deadline:
                # superseded by an earlier deadline
                heapq.heappop(self._waiting)
                continue
            if deadline > now:
                return deadline - now
            heapq.heappop(self._waiting)
            del self._deadlines[key]
            self._add(key)
        return None

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """
        Take the next key to process, blocking until one is available.

        Args:
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            The key, or None on timeout or once the queue is shut down and empty
        """
        end = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while True:
                next_due = self._promote_ready()

                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key

                if self._shutting_down:
                    return None

                wait = next_due
                if end is not None:
                    remaining = end - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)

                self._cond.wait(wait)

    def done(self, key: Hashable) -> None:
        """Mark a key as processed, queueing it again if it was re-added meanwhile."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting keys and wake up all waiting workers."""
        with self._cond:
            self._shutting_down = True
            self._queue.clear()
            self._dirty.clear()
            self._waiting.clear()
            self._deadlines.clear()
            self._cond.notify_all()
        logger.debug(f"Work queue {self.name} shut down")

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def waiting(self) -> int:
        """Number of keys scheduled for later."""
        with self._cond:
            return len(self._deadlines)

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
